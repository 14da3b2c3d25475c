"""
Unit tests for whitelist governance.

Tests cover:
- 3-of-5 threshold verification
- Member replacement rules
- Withdraw whitelist validation
- Whitelist patch instructions end to end
"""

import pytest

from vaultshare.core.exceptions import DuplicateTransactionError, TransactionError
from vaultshare.core.keys import Keypair
from vaultshare.program import events
from vaultshare.program.errors import ErrorCode, VaultShareError
from vaultshare.program.whitelist import (
    replace_member,
    validate_withdraw_whitelist,
    verify_threshold,
)

MEMBERS = [Keypair.from_seed(f"member-{i}").address for i in range(5)]
OUTSIDER = Keypair.from_seed("outsider").address


def _code(func, *args):
    with pytest.raises(VaultShareError) as exc_info:
        func(*args)
    return exc_info.value.code


# ============= Threshold Tests =============


class TestVerifyThreshold:
    """Test signer threshold checks."""

    def test_three_members_approve(self):
        approvals = verify_threshold(MEMBERS, [MEMBERS[4], MEMBERS[0], MEMBERS[2]])
        assert approvals == [MEMBERS[0], MEMBERS[2], MEMBERS[4]]

    def test_two_members_rejected(self):
        assert _code(verify_threshold, MEMBERS, MEMBERS[:2]) == ErrorCode.UnauthorizedSigner

    def test_outsiders_do_not_count(self):
        signers = MEMBERS[:2] + [OUTSIDER]
        assert _code(verify_threshold, MEMBERS, signers) == ErrorCode.UnauthorizedSigner

    def test_repeated_signer_counts_once(self):
        signers = [MEMBERS[0], MEMBERS[0], MEMBERS[1]]
        assert _code(verify_threshold, MEMBERS, signers) == ErrorCode.UnauthorizedSigner

    def test_whitelist_must_hold_five(self):
        assert _code(verify_threshold, MEMBERS[:4], MEMBERS[:4]) == ErrorCode.WhitelistMustBeFive


# ============= Replacement Tests =============


class TestReplaceMember:
    """Test single-member swaps."""

    def test_position_preserved(self):
        updated = replace_member(MEMBERS, MEMBERS[2], OUTSIDER)

        assert updated[2] == OUTSIDER
        assert updated[:2] == MEMBERS[:2]
        assert updated[3:] == MEMBERS[3:]

    def test_same_address_rejected(self):
        assert _code(replace_member, MEMBERS, MEMBERS[0], MEMBERS[0]) == ErrorCode.WhitelistAddressExists

    def test_target_already_member(self):
        assert _code(replace_member, MEMBERS, MEMBERS[0], MEMBERS[1]) == ErrorCode.WhitelistAddressExists

    def test_source_not_member(self):
        assert _code(replace_member, MEMBERS, OUTSIDER, Keypair.from_seed("x").address) == (
            ErrorCode.WhitelistAddressNotFound
        )

    def test_invalid_target_address(self):
        assert _code(replace_member, MEMBERS, MEMBERS[0], "not-an-address") == (
            ErrorCode.InvalidRecipientAddress
        )


class TestWithdrawWhitelistValidation:
    """Test withdraw whitelist shape rules."""

    def test_empty_rejected(self):
        assert _code(validate_withdraw_whitelist, []) == ErrorCode.WhitelistLengthInvalid

    def test_six_rejected(self):
        assert _code(validate_withdraw_whitelist, MEMBERS + [OUTSIDER]) == ErrorCode.WhitelistLengthInvalid

    def test_duplicates_rejected(self):
        assert _code(validate_withdraw_whitelist, [OUTSIDER, OUTSIDER]) == ErrorCode.WhitelistAddressExists

    def test_one_to_five_accepted(self):
        validate_withdraw_whitelist([OUTSIDER])
        validate_withdraw_whitelist(MEMBERS)


# ============= Patch Instruction Tests =============


class TestPatchInstructions:
    """Test whitelist patches through the program."""

    def test_patch_execute_whitelist(self, investment, execute_signers):
        receipt = investment.patch_execute_whitelist(
            execute_signers[:3], execute_signers[4].address, OUTSIDER
        )

        info = investment.fetch_investment_info()
        assert info.execute_whitelist[4] == OUTSIDER
        assert execute_signers[4].address not in info.execute_whitelist
        event = receipt.events[0]
        assert isinstance(event, events.WhitelistUpdated)
        assert event.kind == "execute"
        assert set(event.signers) >= {k.address for k in execute_signers[:3]}

    def test_patch_requires_three_signatures(self, investment, execute_signers):
        with pytest.raises(TransactionError, match="UnauthorizedSigner"):
            investment.patch_execute_whitelist(execute_signers[:2], execute_signers[4].address, OUTSIDER)

        assert investment.fetch_investment_info().execute_whitelist[4] == execute_signers[4].address

    def test_update_list_cannot_patch_execute_list(self, investment, update_signers, execute_signers):
        with pytest.raises(TransactionError, match="UnauthorizedSigner"):
            investment.patch_execute_whitelist(update_signers[:3], execute_signers[4].address, OUTSIDER)

    def test_patch_update_whitelist(self, investment, update_signers):
        investment.patch_update_whitelist(update_signers[1:4], update_signers[0].address, OUTSIDER)

        assert investment.fetch_investment_info().update_whitelist[0] == OUTSIDER

    def test_replaced_member_loses_vote(self, investment, update_signers, make_records):
        investment.patch_update_whitelist(update_signers[1:4], update_signers[0].address, OUTSIDER)

        with pytest.raises(TransactionError, match="UnauthorizedSigner"):
            investment.add_investment_record(
                [update_signers[0], update_signers[1], update_signers[2]], make_records(1)[0]
            )

    def test_patch_to_existing_member_rejected(self, investment, update_signers):
        with pytest.raises(TransactionError, match="WhitelistAddressExists"):
            investment.patch_update_whitelist(
                update_signers[:3], update_signers[0].address, update_signers[1].address
            )

    def test_patch_withdraw_whitelist(self, investment, execute_signers):
        receipt = investment.patch_withdraw_whitelist(execute_signers[:3], [OUTSIDER])

        assert investment.fetch_investment_info().withdraw_whitelist == [OUTSIDER]
        assert receipt.events[0].wallets == (OUTSIDER,)

    def test_replayed_withdraw_patch_rejected(self, investment, execute_signers, ledger):
        signers = execute_signers[:3]
        restore = Keypair.from_seed("removed-recipient").address
        first = investment.build_transaction(
            [investment._ix("patch_withdraw_whitelist", {"wallets": [restore]}, signers)], signers
        )
        ledger.process_transaction(first)
        investment.patch_withdraw_whitelist(signers, [OUTSIDER])

        with pytest.raises(DuplicateTransactionError):
            ledger.process_transaction(first)

        assert investment.fetch_investment_info().withdraw_whitelist == [OUTSIDER]

    def test_withdraw_patch_needs_execute_list(self, investment, update_signers):
        with pytest.raises(TransactionError, match="UnauthorizedSigner"):
            investment.patch_withdraw_whitelist(update_signers[:3], [OUTSIDER])

    def test_withdraw_patch_rejects_empty_list(self, investment, execute_signers):
        with pytest.raises(TransactionError, match="WhitelistLengthInvalid"):
            investment.patch_withdraw_whitelist(execute_signers[:3], [])

    def test_patches_blocked_after_deactivation(self, investment, update_signers, execute_signers):
        investment.complete_investment_info(update_signers[:3])
        investment.deactivate_investment_info(update_signers[:3])

        with pytest.raises(TransactionError, match="InvestmentInfoDeactivated"):
            investment.patch_execute_whitelist(execute_signers[:3], execute_signers[4].address, OUTSIDER)
