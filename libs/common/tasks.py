"""At-most-once async work with an explicit retry entry point."""

from typing import Any, Awaitable, Callable


class GuardedTask:
    """Wrap an async callable so it runs at most once until reset.

    ``run`` is a no-op (returns False) when the task already ran or is in
    flight. A failing run re-arms the guard before re-raising, so a later
    ``run`` or ``retry`` can attempt it again.
    """

    def __init__(self, func: Callable[..., Awaitable[Any]], *, name: str):
        self._func = func
        self.name = name
        self.attempted = False
        self.in_flight = False

    async def run(self, *args, **kwargs) -> bool:
        if self.attempted or self.in_flight:
            return False

        self.attempted = True
        self.in_flight = True
        try:
            await self._func(*args, **kwargs)
        except BaseException:
            self.attempted = False
            raise
        finally:
            self.in_flight = False
        return True

    async def retry(self, *args, **kwargs) -> bool:
        """Run again even if a previous attempt completed."""
        if self.in_flight:
            return False
        self.attempted = False
        return await self.run(*args, **kwargs)

    def reset(self) -> None:
        self.attempted = False
