"""
Dice game program

Owns the bet lifecycle on the ledger: the house funds a vault, players place
bets into it, and the house resolves each bet by publishing an ed25519
signature over the bet's canonical bytes. The signature is verified through
the transaction's signature envelope and hashed into the outcome, so the
house can neither pick the roll nor settle a bet it did not sign.
"""

import hashlib
import logging
from collections.abc import Sequence

from ..config import config
from ..models.bet import Bet
from ..models.enums import BetOutcome, InstructionKind
from ..models.events import BetPlaced, BetRefunded, ResolutionFailed, ResolutionReceipt, VaultFunded
from ..models.instruction import AccountMeta, Instruction, Transaction
from ..models.keypair import Keypair
from ..models.pubkey import Pubkey, find_program_address
from ..services import Events, PerformanceLogger, event_bus
from ..utils.lamports import format_lamports
from .encoder import BET_ENCODED_LENGTH, decode_bet
from .envelope import build_ed25519_instruction
from .errors import BetNotFound, DiceError, HouseSignatureMissing, InvalidBet, TimeoutNotReached
from .ledger import SYSTEM_PROGRAM_ID, AccountNotFound, Ledger, LedgerError, TransactionContext
from .outcome import derive_outcome
from .settlement import checked_sub, settle
from .validators import validate_bet, validate_vault_amount
from .verifier import verify_envelope

logger = logging.getLogger(__name__)

BET_DISCRIMINATOR = hashlib.sha256(b"account:Bet").digest()[:8]


def bet_account_space() -> int:
    return config.get("ledger", "account_discriminator_size") + BET_ENCODED_LENGTH


def encode_bet_account(bet: Bet) -> bytes:
    return BET_DISCRIMINATOR + bet.to_slice()


def decode_bet_account(data: bytes) -> Bet:
    """
    Raises:
        BetNotFound: If the account does not hold a bet record
    """
    if data[: len(BET_DISCRIMINATOR)] != BET_DISCRIMINATOR:
        raise BetNotFound("Account does not hold a bet record")
    return decode_bet(data[len(BET_DISCRIMINATOR):])


class DiceGame:
    """
    Dice program bound to one ledger

    Responsibilities:
    - Derive vault and bet addresses
    - Build, sign and submit program transactions
    - Settle resolutions and refunds atomically
    - Publish settlement events once a transaction has committed
    """

    def __init__(self, ledger: Ledger, program_id: Pubkey | None = None):
        self.ledger = ledger
        self.program_id = program_id or Pubkey.from_string(config.get("program", "program_id"))
        logger.info(f"DiceGame initialized for program {self.program_id}")

    # ========================================================================
    # ADDRESSES
    # ========================================================================

    def vault_address(self, house: Pubkey) -> tuple[Pubkey, int]:
        return find_program_address(
            [config.get("program", "vault_seed"), house.to_bytes()], self.program_id
        )

    def bet_address(self, vault: Pubkey, seed: int) -> tuple[Pubkey, int]:
        return find_program_address(
            [config.get("program", "bet_seed"), vault.to_bytes(), seed.to_bytes(16, "little")],
            self.program_id,
        )

    def _vault_signer_seeds(self, house: Pubkey, bump: int) -> list[bytes]:
        return [config.get("program", "vault_seed"), house.to_bytes(), bytes([bump])]

    def get_bet(self, house: Pubkey, seed: int) -> Bet | None:
        """Read a live bet record, or None if it has been settled or never existed"""
        vault, _ = self.vault_address(house)
        address, _ = self.bet_address(vault, seed)
        account = self.ledger.get_account(address)
        if account is None or account.owner != self.program_id:
            return None
        return decode_bet_account(account.data)

    # ========================================================================
    # INITIALIZE
    # ========================================================================

    def initialize(self, house_kp: Keypair, amount: int) -> VaultFunded:
        """
        Move amount lamports from the house into its vault

        Calling it again tops the vault up.

        Raises:
            InvalidBet: If amount is not a positive u64
            InsufficientFunds: If the house cannot cover amount
        """
        house = house_kp.pubkey
        is_valid, error = validate_vault_amount(amount)
        if not is_valid:
            logger.warning(f"Rejected vault funding from {house}: {error}")
            raise InvalidBet(error)

        vault, _ = self.vault_address(house)

        def handler(ctx: TransactionContext) -> VaultFunded:
            ctx.transfer(house, vault, amount)
            return VaultFunded(
                house=str(house),
                vault=str(vault),
                slot=ctx.slot,
                amount=amount,
                vault_balance=ctx.balance(vault),
            )

        ix = self._instruction(
            InstructionKind.INITIALIZE,
            amount.to_bytes(8, "little"),
            AccountMeta(house, is_signer=True, is_writable=True),
            AccountMeta(vault, is_writable=True),
        )
        event = self.ledger.execute(Transaction([ix]).sign(house_kp), self.program_id, handler)

        logger.info(f"VAULT FUNDED: {format_lamports(amount)} into {vault}")
        event_bus.publish(Events.VAULT_FUNDED, event.model_dump())
        return event

    # ========================================================================
    # PLACE BET
    # ========================================================================

    def place_bet(self, player_kp: Keypair, house: Pubkey, seed: int, roll: int, amount: int) -> Bet:
        """
        Record a bet and move the wager into the house vault

        The player pays the bet account's storage deposit; it is returned to
        whoever closes the account.

        Raises:
            InvalidBet: If seed, roll or amount are out of bounds or unaffordable
            AccountAlreadyExists: If the player reuses a live seed for this house
        """
        player = player_kp.pubkey
        is_valid, error = validate_bet(seed, roll, amount, self.ledger.get_balance(player))
        if not is_valid:
            logger.warning(f"Rejected bet from {player}: {error}")
            raise InvalidBet(error)

        vault, _ = self.vault_address(house)
        address, bump = self.bet_address(vault, seed)

        def handler(ctx: TransactionContext) -> Bet:
            bet = Bet(seed=seed, player=player, slot=ctx.slot, amount=amount, roll=roll, bump=bump)
            ctx.create_account(address, player, encode_bet_account(bet), space=bet_account_space())
            ctx.transfer(player, vault, amount)
            return bet

        ix = self._instruction(
            InstructionKind.PLACE_BET,
            seed.to_bytes(16, "little") + amount.to_bytes(8, "little") + bytes([roll]),
            AccountMeta(player, is_signer=True, is_writable=True),
            AccountMeta(house),
            AccountMeta(vault, is_writable=True),
            AccountMeta(address, is_writable=True),
        )
        bet = self.ledger.execute(Transaction([ix]).sign(player_kp), self.program_id, handler)

        logger.info(
            f"BET PLACED: {format_lamports(amount)} under {roll} by {player} (seed {seed})"
        )
        event_bus.publish(
            Events.BET_PLACED,
            BetPlaced(
                house=str(house),
                vault=str(vault),
                slot=bet.slot,
                bet=str(address),
                player=str(player),
                seed=seed,
                roll=roll,
                amount=amount,
                message=bet.to_slice().hex(),
            ).model_dump(),
        )
        return bet

    # ========================================================================
    # RESOLVE BET
    # ========================================================================

    def sign_bet(self, house_kp: Keypair, seed: int) -> tuple[bytes, Instruction]:
        """
        House side of a resolution: sign the live bet's canonical bytes

        Returns:
            Tuple of (signature, ed25519 primitive instruction carrying it)

        Raises:
            BetNotFound: If no live bet exists for seed
        """
        bet = self.get_bet(house_kp.pubkey, seed)
        if bet is None:
            raise BetNotFound(f"No live bet with seed {seed}")
        instruction = build_ed25519_instruction(house_kp, bet.to_slice())
        return house_kp.sign(bet.to_slice()), instruction

    def resolve_bet(
        self,
        house: Pubkey,
        seed: int,
        signature: bytes,
        envelope: Sequence[Instruction],
        signers: Sequence[Keypair],
    ) -> ResolutionReceipt:
        """
        Settle a bet from the house's signature over it

        envelope holds the instructions placed before the resolution in the
        same transaction; the signature proof is expected at the configured
        envelope index. Either the whole settlement applies or nothing does,
        and a bet can be settled at most once.

        Raises:
            HouseSignatureMissing: If house is not among the transaction signers
            BetNotFound: If the bet is absent or was already settled
            EnvelopeError, MismatchError: If the proof does not cover this bet
            Overflow: If the payout does not fit the ledger's amount width
            LedgerError: If a primitive fails, e.g. the vault cannot cover the payout
        """
        vault, vault_bump = self.vault_address(house)
        address, _ = self.bet_address(vault, seed)
        signature = bytes(signature)

        def handler(ctx: TransactionContext) -> ResolutionReceipt:
            if not ctx.is_signer(house):
                raise HouseSignatureMissing(f"House {house} did not sign")

            try:
                account = ctx.take_account(address)
            except AccountNotFound:
                raise BetNotFound(f"No live bet with seed {seed} for house {house}")
            bet = decode_bet_account(account.data)

            verify_envelope(
                ctx.instructions,
                signature,
                house,
                bet.to_slice(),
                index=config.get("program", "envelope_index"),
            )

            outcome = derive_outcome(signature)
            payout = settle(outcome, bet)
            if payout is not None:
                ctx.transfer(
                    vault, bet.player, payout, signer_seeds=self._vault_signer_seeds(house, vault_bump)
                )

            storage_refund = ctx.close_to(account, address, house)
            return ResolutionReceipt(
                house=str(house),
                vault=str(vault),
                slot=ctx.slot,
                bet=str(address),
                player=str(bet.player),
                seed=bet.seed,
                roll=bet.roll,
                amount=bet.amount,
                outcome=outcome,
                result=BetOutcome.from_roll(outcome, bet.roll),
                payout=payout,
                storage_refund=storage_refund,
                signature=signature.hex(),
            )

        ix = self._instruction(
            InstructionKind.RESOLVE_BET,
            signature,
            AccountMeta(house, is_signer=True, is_writable=True),
            AccountMeta(vault, is_writable=True),
            AccountMeta(address, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID),
        )
        transaction = Transaction([*envelope, ix]).sign(*signers)

        try:
            with PerformanceLogger(logger, f"resolve_bet seed={seed}"):
                receipt = self.ledger.execute(transaction, self.program_id, handler)
        except (DiceError, LedgerError) as e:
            logger.warning(f"Resolution of seed {seed} for {house} failed: {e}")
            event_bus.publish(
                Events.RESOLUTION_FAILED,
                ResolutionFailed(
                    house=str(house),
                    seed=seed,
                    error=type(e).__name__,
                    code=getattr(e, "code", None),
                    reason=str(e),
                ).model_dump(),
            )
            raise

        if receipt.won:
            logger.info(
                f"BET WON: outcome {receipt.outcome} < {receipt.roll}, "
                f"paid {format_lamports(receipt.payout)} to {receipt.player}"
            )
        else:
            logger.info(f"BET LOST: outcome {receipt.outcome} >= {receipt.roll} (seed {seed})")

        payload = receipt.model_dump()
        event_bus.publish(Events.BET_RESOLVED, payload)
        event_bus.publish(Events.BET_WON if receipt.won else Events.BET_LOST, payload)
        return receipt

    def house_resolve(self, house_kp: Keypair, seed: int) -> ResolutionReceipt:
        """Sign the bet as the house and resolve it in one transaction"""
        signature, instruction = self.sign_bet(house_kp, seed)
        return self.resolve_bet(house_kp.pubkey, seed, signature, [instruction], [house_kp])

    # ========================================================================
    # REFUND BET
    # ========================================================================

    def refund_bet(self, player_kp: Keypair, house: Pubkey, seed: int) -> BetRefunded:
        """
        Return the wager and storage deposit of a bet the house never resolved

        Raises:
            BetNotFound: If the bet is absent or already settled
            InvalidBet: If the signer is not the bet's player
            TimeoutNotReached: Until more than refund_timeout_slots slots have
                passed since the bet was placed
        """
        player = player_kp.pubkey
        vault, vault_bump = self.vault_address(house)
        address, _ = self.bet_address(vault, seed)
        timeout = config.get("game_rules", "refund_timeout_slots")

        def handler(ctx: TransactionContext) -> BetRefunded:
            try:
                account = ctx.take_account(address)
            except AccountNotFound:
                raise BetNotFound(f"No live bet with seed {seed} for house {house}")
            bet = decode_bet_account(account.data)

            if bet.player != player or not ctx.is_signer(player):
                raise InvalidBet(f"Bet {address} belongs to {bet.player}, not {player}")

            elapsed = checked_sub(ctx.slot, bet.slot)
            if elapsed <= timeout:
                raise TimeoutNotReached(
                    f"{elapsed} slots since placement, refund allowed after {timeout}"
                )

            ctx.transfer(
                vault, player, bet.amount, signer_seeds=self._vault_signer_seeds(house, vault_bump)
            )
            storage_refund = ctx.close_to(account, address, player)
            return BetRefunded(
                house=str(house),
                vault=str(vault),
                slot=ctx.slot,
                bet=str(address),
                player=str(player),
                seed=seed,
                amount=bet.amount,
                placed_slot=bet.slot,
                storage_refund=storage_refund,
            )

        ix = self._instruction(
            InstructionKind.REFUND_BET,
            b"",
            AccountMeta(player, is_signer=True, is_writable=True),
            AccountMeta(house),
            AccountMeta(vault, is_writable=True),
            AccountMeta(address, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID),
        )
        event = self.ledger.execute(Transaction([ix]).sign(player_kp), self.program_id, handler)

        logger.info(f"BET REFUNDED: {format_lamports(event.amount)} to {player} (seed {seed})")
        event_bus.publish(Events.BET_REFUNDED, event.model_dump())
        return event

    # ========================================================================
    # HELPERS
    # ========================================================================

    def _instruction(self, tag: InstructionKind, payload: bytes, *accounts: AccountMeta) -> Instruction:
        return Instruction(program_id=self.program_id, accounts=accounts, data=bytes([tag]) + payload)
