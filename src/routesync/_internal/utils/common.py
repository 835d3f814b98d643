import asyncio
import random
import string
from collections.abc import Callable
from functools import partial
from typing import TypeVar

from typing_extensions import ParamSpec

P = ParamSpec("P")
R = TypeVar("R")

_ID_ALPHABET = string.ascii_letters + string.digits


async def run_async(func: Callable[P, R], *args: P.args, **kwargs: P.kwargs) -> R:
    func_with_args = partial(func, *args, **kwargs)
    return await asyncio.get_running_loop().run_in_executor(None, func_with_args)


def generate_id(length: int = 6) -> str:
    """
    Returns a request id like `ID-aZ3k9Q`. Ids only need to be unique among
    requests in flight, not unpredictable.
    """
    return "ID-" + "".join(random.choices(_ID_ALPHABET, k=length))
