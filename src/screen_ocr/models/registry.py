"""
Model registry: where the OCR weights come from and where they live on disk.

Files are pulled from one HuggingFace repository through huggingface_hub,
which owns the cache. A local path given by the caller always wins over
the download.

Usage:
    from screen_ocr.models import registry

    det = registry.resolve("paddle_ocr", "detector")                # cached or downloaded
    rec = registry.resolve("paddle_ocr", "recognizer", "rec.onnx")  # local override
    print(registry.status())
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Union

from .config import ALL_GROUPS, HF_REPO, ModelFile, ModelGroup

logger = logging.getLogger(__name__)


class ModelRegistry:
    """Lookup table from (group, key) to a model file on disk."""

    def __init__(self, repo_id: str = HF_REPO, groups: Optional[Dict[str, ModelGroup]] = None):
        self.repo_id = repo_id
        self.groups = ALL_GROUPS if groups is None else groups

    def entry(self, group_name: str, file_key: str) -> ModelFile:
        """Find the definition of one file.

        Raises:
            KeyError: On an unknown group or key, listing the valid names
        """
        group = self.groups.get(group_name)
        if group is None:
            raise KeyError(
                f"Unknown model group '{group_name}'. Available: {', '.join(self.groups)}"
            )
        model_file = group.files.get(file_key)
        if model_file is None:
            raise KeyError(
                f"Unknown file '{file_key}' in group '{group_name}'. "
                f"Available: {', '.join(group.files)}"
            )
        return model_file

    def get(self, group_name: str, file_key: str) -> Path:
        """Local path of a model file, downloading it on first use."""
        return self._download(self.entry(group_name, file_key))

    def resolve(
        self,
        group_name: str,
        file_key: str,
        override: Optional[Union[str, Path]] = None,
    ) -> Path:
        """``override`` when given, otherwise the registry copy.

        Raises:
            FileNotFoundError: If ``override`` does not exist
        """
        if override is None:
            return self.get(group_name, file_key)
        path = Path(override)
        if not path.exists():
            raise FileNotFoundError(f"Model file not found: {path}")
        logger.debug("Using local %s/%s: %s", group_name, file_key, path)
        return path

    def download_group(self, group_name: str) -> Dict[str, Path]:
        """Fetch every file of a group; returns key -> local path."""
        return {key: self.get(group_name, key) for key in self.groups[group_name].files}

    def status(self) -> str:
        """Human-readable report of which files are already cached."""
        lines = [f"Model cache for {self.repo_id}", "=" * 60]
        for group in self.groups.values():
            lines.append(f"\n{group.name}  ({group.description})")
            for key, model_file in group.files.items():
                cached = self._cached(model_file)
                mark = "OK" if cached else "MISSING"
                where = cached or f"hf://{self.repo_id}/{model_file.filename}"
                lines.append(f"  [{mark:>7}]  {key:<12} {where}")
        return "\n".join(lines)

    def _download(self, model_file: ModelFile) -> Path:
        from huggingface_hub import hf_hub_download

        logger.info("Resolving %s from %s", model_file.filename, self.repo_id)
        return Path(hf_hub_download(self.repo_id, model_file.filename))

    def _cached(self, model_file: ModelFile) -> Optional[str]:
        from huggingface_hub import try_to_load_from_cache

        found = try_to_load_from_cache(self.repo_id, model_file.filename)
        # Non-str sentinels mean "known missing"
        return found if isinstance(found, str) else None


registry = ModelRegistry()
