from __future__ import annotations

from typing import Any

from structured_stream.core.domain.partial_json import LocateResult


class ArrayPathLocator:
    """Find the target array inside a (possibly partial) parsed document."""

    def locate(self, root: Any, path: str) -> LocateResult:
        """
        Walk ``path`` (dot-separated object keys) from ``root``.

        Args:
            root: The best-effort parsed value
            path: A validated target path such as ``"data.potential_causes"``

        Returns:
            The array at the path, or a not-found result if a key is
            missing, an intermediate value is not an object, or the
            terminal value is not an array.
        """
        current = root
        for key in path.split("."):
            if not isinstance(current, dict) or key not in current:
                return LocateResult()
            current = current[key]
        if not isinstance(current, list):
            return LocateResult()
        return LocateResult(array=current)
