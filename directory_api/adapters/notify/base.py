from abc import ABC, abstractmethod

from directory_api.schemas.submission import SubmissionRecord


class AbstractNotifier(ABC):
    """Interface for announcing new submissions to moderators."""

    @abstractmethod
    async def notify(self, record: SubmissionRecord) -> bool:
        """Announce a newly stored submission.

        Implementations never raise: failures are logged and reported
        through the return value only.

        Returns:
            bool: True if the announcement was delivered.
        """
        ...

    async def aclose(self) -> None:
        return None
