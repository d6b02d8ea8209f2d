from abc import ABC, abstractmethod
from typing import Optional


class Subscriber(ABC):
    """
    Handle for one live viewer connection.
    """

    @abstractmethod
    async def send(self, message: str):
        """
        Deliver one serialized message; raises if the connection is gone.
        """


class SubscriberRegistry(ABC):
    """
    Abstract base class for registries of live subscribers.
    """

    @abstractmethod
    async def connect(self, subscriber: Subscriber) -> Optional[str]:
        """
        Register a subscriber and hand it the most recent message, if any.

        Args:
            subscriber (Subscriber): The subscriber to register.

        Returns:
            Optional[str]: The message sent on connect, or None before the first publish.
        """

    @abstractmethod
    async def disconnect(self, subscriber: Subscriber) -> bool:
        """
        Remove a subscriber.

        Args:
            subscriber (Subscriber): The subscriber to remove.

        Returns:
            bool: True if the subscriber was registered.
        """

    @abstractmethod
    async def subscriber_count(self) -> int:
        """
        Return the number of connected subscribers.
        """
