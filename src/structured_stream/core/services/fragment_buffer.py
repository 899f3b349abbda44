from __future__ import annotations


class FragmentBuffer:
    """
    Append-only accumulator for the raw text of one streaming response.

    Fragments are kept as a list of chunks and joined lazily; the joined
    text is cached and collapsed back into a single chunk, so repeated
    ``append``/``snapshot`` cycles stay linear in the response size. The
    buffer never discards or rewrites text during a session.
    """

    def __init__(self) -> None:
        self._chunks: list[str] = []
        self._length = 0
        self._fragment_count = 0
        self._snapshot: str | None = ""

    def append(self, text: str) -> None:
        self._fragment_count += 1
        if not text:
            return
        self._chunks.append(text)
        self._length += len(text)
        self._snapshot = None

    def snapshot(self) -> str:
        """Return the full text received so far."""
        if self._snapshot is None:
            joined = "".join(self._chunks)
            self._chunks = [joined]
            self._snapshot = joined
        return self._snapshot

    @property
    def fragment_count(self) -> int:
        return self._fragment_count

    def __len__(self) -> int:
        return self._length
