from typing import Any, Optional, Protocol

from loguru import logger
from pydantic import ValidationError

from verus_chat.config import settings
from verus_chat.models import Credentials, DetectionOutcome


class KeyValueStore(Protocol):
    """The app's persistent JSON blob store, keyed by string."""

    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> bool: ...

    def has(self, key: str) -> bool: ...

    def save(self) -> None: ...


class StoreKeys:
    """
    StoreKeys is a utility class for generating store keys used in the application.

    Attributes:
        APP_NAME (str): The name of the application, retrieved from settings.
        credentials (str): Key for the resolved RPC credentials.
        blockchain (str): Key for the id of the chain the user selected.

    Methods:
        persistence_preference(i_address: str) -> str:
        conversations(i_address: str) -> str:
        messages(i_address: str, conversation_id: str) -> str:
    """

    APP_NAME = settings.app_name
    credentials = f"{APP_NAME}:rpc_credentials"
    blockchain = f"{APP_NAME}:selected_blockchain"

    @staticmethod
    def persistence_preference(i_address: str) -> str:
        return f"{StoreKeys.APP_NAME}:persist_pref:{i_address}"

    @staticmethod
    def conversations(i_address: str) -> str:
        return f"{StoreKeys.APP_NAME}:conversations:{i_address}"

    @staticmethod
    def messages(i_address: str, conversation_id: str) -> str:
        """
        Generates the key holding one conversation's messages.

        Args:
            i_address (str): The logged-in identity's i-address.
            conversation_id (str): Conversation id, usually the peer identity.

        Returns:
            str: The store key.
        """
        return f"{StoreKeys.APP_NAME}:messages:{i_address}:{conversation_id}"


def remember_endpoint(store: KeyValueStore, outcome: DetectionOutcome) -> bool:
    """
    Persists the credentials and chain of a detection outcome.

    Returns:
        bool: False if the outcome carries no credentials and nothing was saved.
    """
    if outcome.credentials is None:
        return False
    store.set(StoreKeys.credentials, outcome.credentials.model_dump())
    store.set(StoreKeys.blockchain, outcome.blockchain_id)
    store.save()
    logger.info(f"Saved RPC credentials for {outcome.blockchain_id}")
    return True


def load_credentials(store: KeyValueStore) -> Optional[Credentials]:
    value = store.get(StoreKeys.credentials)
    if value is None:
        return None
    try:
        return Credentials.model_validate(value)
    except ValidationError as exc:
        logger.error(f"Stored RPC credentials are invalid: {exc}")
        return None


def forget_endpoint(store: KeyValueStore) -> None:
    removed = False
    for key in (StoreKeys.credentials, StoreKeys.blockchain):
        if store.has(key):
            removed = store.delete(key) or removed
    if removed:
        store.save()
        logger.info("Cleared saved RPC credentials")
