"""
Reference-counted ownership of native engine handles.

A `SharedHandle` wraps one native pointer together with the call that tears
it down. Holders `retain()` it and `release()` it (usually through
`weakref.finalize`), and the teardown runs exactly once, when the last holder
lets go or when `close()` is called explicitly.
"""
import logging
from collections.abc import Callable
from typing import Any

from sqlitedb.exceptions import ProgrammingError

__all__ = ['SharedHandle']

logger = logging.getLogger(__name__)


class SharedHandle:
    """Shared owner of a native pointer.

    Not thread-safe: a handle, and every object holding it, must be confined
    to one thread or guarded by the caller.
    """

    def __init__(self, pointer: Any, teardown: Callable[[Any], None],
                 kind: str = 'handle') -> None:
        self._pointer = pointer
        self._teardown = teardown
        self.kind = kind
        self.refcount = 1
        self.keepalive: dict[str, Any] = {}

    def __repr__(self) -> str:
        state = 'released' if self.released else f'refcount={self.refcount}'
        return f'SharedHandle({self.kind}, {state})'

    @property
    def released(self) -> bool:
        return self._pointer is None

    @property
    def pointer(self) -> Any:
        """The live native pointer; raises once the handle has been torn down.
        """
        if self._pointer is None:
            raise ProgrammingError(f'{self.kind} used after it was closed')
        return self._pointer

    def retain(self) -> 'SharedHandle':
        """Register one more holder."""
        if self._pointer is None:
            raise ProgrammingError(f'{self.kind} used after it was closed')
        self.refcount += 1
        return self

    def release(self) -> None:
        """Drop one holder, tearing the handle down when none are left.

        Called from finalizers, so teardown errors are logged, not raised.
        """
        if self._pointer is None:
            return
        self.refcount -= 1
        if self.refcount > 0:
            return
        pointer, self._pointer = self._pointer, None
        try:
            self._teardown(pointer)
        except Exception as e:
            logger.error(f'Error releasing {self.kind}: {e}')
        finally:
            self.keepalive.clear()

    def close(self, teardown: Callable[[Any], None] | None = None) -> None:
        """Tear the handle down now, invalidating it for every holder.

        If the teardown call raises, the handle stays valid and the error
        propagates.
        """
        pointer = self.pointer
        (teardown or self._teardown)(pointer)
        self._pointer = None
        self.refcount = 0
        self.keepalive.clear()
