from algosdk import account, mnemonic
from algosdk.atomic_transaction_composer import AccountTransactionSigner, TransactionSigner

from errors import ConfigurationError


class Signer:
    """
    Wallet capability used for writes.

    ``request_authorization`` is the user-facing suspension point: it returns
    the authorized account address or raises UserDeclinedError.
    """

    @property
    def address(self) -> str:
        raise NotImplementedError

    @property
    def transaction_signer(self) -> TransactionSigner:
        raise NotImplementedError

    def request_authorization(self) -> str:
        raise NotImplementedError


class MnemonicSigner(Signer):
    """Service account signer built from a 25-word mnemonic. Authorized once constructed."""

    def __init__(self, service_mnemonic: str) -> None:
        if not service_mnemonic:
            raise ConfigurationError("ALGORAND_SERVICE_MNEMONIC is required", config_key="ALGORAND_SERVICE_MNEMONIC")
        self._private_key = mnemonic.to_private_key(service_mnemonic)
        self._address = account.address_from_private_key(self._private_key)
        self._signer = AccountTransactionSigner(self._private_key)

    @property
    def address(self) -> str:
        return self._address

    @property
    def transaction_signer(self) -> TransactionSigner:
        return self._signer

    def request_authorization(self) -> str:
        return self._address
