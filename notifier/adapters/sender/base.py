from abc import ABC, abstractmethod


class AbstractNotificationSender(ABC):
	"""Interface for channels that deliver notifications."""

	@abstractmethod
	def send(self, notification_type: str, recipient: str, message: str) -> None:
		"""Deliver a notification that was already admitted.

		Args:
			notification_type: Notification type (e.g. "status").
			recipient: Recipient identifier.
			message: Message body.
		"""
		...
