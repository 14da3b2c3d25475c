"""
Instruction account layouts and builders.

Each instruction lists its named accounts in a fixed order. Whitelist
signers and batch accounts (records or recipient token accounts) follow as
remaining accounts, signers flagged as such.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from vaultshare.core.addresses import Address
from vaultshare.core.constants import SYSTEM_PROGRAM_ID, TOKEN_PROGRAM_ID
from vaultshare.core.transaction import AccountMeta, Instruction


@dataclass(frozen=True)
class AccountSpec:
    name: str
    signer: bool = False
    writable: bool = False


def _w(name: str) -> AccountSpec:
    return AccountSpec(name, writable=True)


def _r(name: str) -> AccountSpec:
    return AccountSpec(name)


_PAYER = AccountSpec("payer", signer=True, writable=True)
_FIXED = {"token_program": TOKEN_PROGRAM_ID, "system_program": SYSTEM_PROGRAM_ID}

LAYOUTS: Dict[str, Tuple[AccountSpec, ...]] = {
    "initialize_investment_info": (
        _w("investment_info"), _w("vault"), _w("vault_usdt_account"), _w("vault_hcoin_account"),
        _r("usdt_mint"), _r("hcoin_mint"), _PAYER, _r("token_program"), _r("system_program"),
    ),
    "update_investment_info": (_w("investment_info"), _PAYER),
    "complete_investment_info": (_w("investment_info"), _PAYER),
    "deactivate_investment_info": (_w("investment_info"), _PAYER),
    "patch_execute_whitelist": (_w("investment_info"), _PAYER),
    "patch_update_whitelist": (_w("investment_info"), _PAYER),
    "patch_withdraw_whitelist": (_w("investment_info"), _PAYER),
    "add_investment_record": (
        _w("investment_info"), _w("investment_record"), _PAYER, _r("system_program"),
    ),
    "update_investment_record_wallets": (_r("investment_info"), _PAYER),
    "revoke_investment_record": (_r("investment_info"), _w("investment_record"), _PAYER),
    "estimate_profit_share": (
        _r("investment_info"), _w("cache"), _r("mint"), _PAYER, _r("system_program"),
    ),
    "estimate_refund_share": (
        _r("investment_info"), _w("cache"), _r("mint"), _PAYER, _r("system_program"),
    ),
    "execute_profit_share": (
        _r("investment_info"), _w("cache"), _w("vault"), _w("vault_token_account"), _r("mint"),
        _PAYER, _r("token_program"), _r("system_program"),
    ),
    "execute_refund_share": (
        _r("investment_info"), _w("cache"), _w("vault"), _w("vault_token_account"), _r("mint"),
        _PAYER, _r("token_program"), _r("system_program"),
    ),
    "deposit_sol_to_vault": (
        _r("investment_info"), _w("vault"), _PAYER, _r("system_program"),
    ),
    "deposit_token_to_vault": (
        _r("investment_info"), _w("vault"), _w("vault_token_account"), _r("mint"),
        _w("depositor_token_account"), _PAYER, _r("token_program"), _r("system_program"),
    ),
    "withdraw_from_vault": (
        _r("investment_info"), _w("vault"), _w("vault_usdt_account"), _w("vault_hcoin_account"),
        _r("usdt_mint"), _r("hcoin_mint"), _w("recipient"), _w("recipient_usdt_account"),
        _w("recipient_hcoin_account"), _PAYER, _r("token_program"), _r("system_program"),
    ),
}


def build_instruction(
    program_id: Address,
    name: str,
    accounts: Mapping[str, Address],
    args: Dict[str, Any],
    signers: Iterable[Address] = (),
    remaining: Sequence[AccountMeta] = (),
) -> Instruction:
    """Assemble an instruction from named accounts.

    Args:
        program_id: Vault share program id
        name: Instruction name, a key of ``LAYOUTS``
        accounts: Address for every named account except fixed program ids
        args: Instruction arguments
        signers: Whitelist members approving the call
        remaining: Batch accounts appended after the signers

    Raises:
        KeyError: If the layout is unknown or a named account is missing
    """
    metas: List[AccountMeta] = []
    for spec in LAYOUTS[name]:
        address = accounts.get(spec.name) or _FIXED.get(spec.name)
        if address is None:
            raise KeyError(f"{name} needs account {spec.name!r}")
        metas.append(AccountMeta(address, is_signer=spec.signer, is_writable=spec.writable))
    payer = accounts["payer"]
    for signer in dict.fromkeys(signers):
        if signer != payer:
            metas.append(AccountMeta(signer, is_signer=True))
    metas.extend(remaining)
    return Instruction(program_id, name, metas, args)
