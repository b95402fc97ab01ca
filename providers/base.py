from abc import ABC, abstractmethod
from typing import Any, Dict


class Provider(ABC):
    name: str

    @abstractmethod
    async def infer(
        self,
        credential: str,
        model: str,
        payload: Dict[str, Any],
        timeout: float,
    ) -> Any:
        """
        Send ``payload`` to ``model`` and return the decoded response body.
        Raises httpx.HTTPStatusError on non-2xx responses and lets transport
        errors (timeouts, refused connections) propagate as httpx raises them.
        """
        raise NotImplementedError
