"""Locate model and label files, downloading them from HuggingFace if configured."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from huggingface_hub import hf_hub_download
from huggingface_hub.errors import HfHubHTTPError, LocalEntryNotFoundError

from plantid.ml.errors import ClassifierError, LabelsNotFoundError, ModelNotFoundError

if TYPE_CHECKING:
    from plantid.config import Settings

logger = logging.getLogger(__name__)


class ResourceLocator:
    """Resolves the configured model and label files inside ``models_dir``.

    Files already present locally are used as-is. Missing files are fetched
    with ``hf_hub_download`` when ``model_repo_id`` is set.
    """

    def __init__(self, settings: Settings) -> None:
        self._models_dir = Path(settings.models_dir)
        self._repo_id = settings.model_repo_id
        self._model_file = settings.model_file
        self._labels_file = settings.labels_file

    def resolve_model(self) -> Path:
        return self._resolve(self._model_file, ModelNotFoundError)

    def resolve_labels(self) -> Path:
        return self._resolve(self._labels_file, LabelsNotFoundError)

    def _resolve(self, filename: str, error_cls: type[ClassifierError]) -> Path:
        local = self._models_dir / filename
        if local.is_file():
            return local

        if self._repo_id is None:
            raise error_cls(f"{local} does not exist and no model repository is configured")

        self._models_dir.mkdir(parents=True, exist_ok=True)
        try:
            downloaded = Path(
                hf_hub_download(
                    repo_id=self._repo_id,
                    filename=filename,
                    local_dir=str(self._models_dir),
                )
            )
        except (HfHubHTTPError, LocalEntryNotFoundError, OSError) as exc:
            raise error_cls(f"Could not download {filename} from {self._repo_id}: {exc}") from exc

        logger.info("Downloaded %s to %s", filename, downloaded)
        return downloaded
