"""
Endpoint client interfaces.

The engine never speaks a wire protocol itself. A SourceClient answers
remote-read requests and a DestinationClient accepts remote-write
requests; concrete implementations own transport, encoding and auth.

Error contract:
    Raise EndpointTimeoutError (or TimeoutError) when a request exceeds its
    deadline and anything else, preferably EndpointOtherError, for other
    failures. The retry policy turns these into retry/skip/abort decisions.
"""

from abc import ABC, abstractmethod

from tsmigrator.models import ReadRequest, ReadResponse, WriteRequest


class SourceClient(ABC):
    """
    Abstract base class for endpoints data is pulled from.

    Concrete implementations:
    - InMemorySeriesStore: For testing and development
    """

    @abstractmethod
    async def read(self, request: ReadRequest) -> ReadResponse:
        """
        Pull all samples in ``[request.start_ms, request.end_ms)`` matching
        ``request.matchers``.

        Args:
            request: Range and selector to read

        Returns:
            ReadResponse with the matching series

        Raises:
            EndpointTimeoutError: If the request timed out
            EndpointOtherError: On any other failure
        """
        pass


class DestinationClient(ABC):
    """
    Abstract base class for endpoints data is pushed to.

    Concrete implementations:
    - InMemorySeriesStore: For testing and development
    """

    @abstractmethod
    async def write(self, request: WriteRequest) -> None:
        """
        Push a batch of series.

        Args:
            request: Series to write

        Raises:
            EndpointTimeoutError: If the request timed out
            EndpointOtherError: On any other failure
        """
        pass


__all__ = ["SourceClient", "DestinationClient"]
