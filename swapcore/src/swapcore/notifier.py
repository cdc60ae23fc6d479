"""
Event notifiers built on the broker.

PeerNotifier fans out peer connection changes; BackupNotifier signals that
state changed and a backup should be taken. Neither is part of swap settlement.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from swapcore.broker import Broker, BrokerClosedError, Subscription


@dataclass(frozen=True)
class PeerConnectionChangedEvent:
    peer_pubkey: str
    peer_address: str
    connected: bool


@dataclass(frozen=True)
class BackupNeededEvent:
    reason: str = ""


class _Notifier:
    def __init__(self, queue_size: int = 100):
        self._broker = Broker(queue_size=queue_size)

    def start(self) -> None:
        self._broker.start()

    def stop(self) -> None:
        self._broker.stop()

    def _subscribe(self) -> Subscription:
        return self._broker.subscribe()

    def _send(self, event: object) -> None:
        try:
            self._broker.publish(event)
        except BrokerClosedError as e:
            logger.warning(f"Unable to send {type(event).__name__} update: {e}")


class PeerNotifier(_Notifier):
    def subscribe_peer_events(self) -> Subscription:
        return self._subscribe()

    def notify_peer_connection_changed(self, pubkey: str, address: str, connected: bool) -> None:
        self._send(
            PeerConnectionChangedEvent(
                peer_pubkey=pubkey, peer_address=address, connected=connected
            )
        )


class BackupNotifier(_Notifier):
    def subscribe_backup_events(self) -> Subscription:
        return self._subscribe()

    def notify_backup_needed(self, reason: str = "") -> None:
        self._send(BackupNeededEvent(reason=reason))
