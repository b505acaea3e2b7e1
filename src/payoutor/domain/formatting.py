"""Operator summary and forum reply text.

Plain templating over already computed numbers and hex payloads.
"""
from __future__ import annotations

from collections.abc import Sequence

from payoutor.chain.addresses import short_address
from payoutor.config import AppSettings
from payoutor.domain.networks import decode_link, price_converter_url
from payoutor.domain.request import PayoutRequest
from payoutor.domain.result import TokenPayout
from payoutor.types import Network

BANNER_RULE = "=================================="
FORUM_SIGNATURE = "Thank you for your contributions to the Moonbeam ecosystem. Much appreciated!"


def _banner(title: str) -> str:
    return f"{BANNER_RULE}\n=== {title} ===\n{BANNER_RULE}"


def _underline(title: str) -> str:
    return f"{title}\n{'=' * len(title)}"


def _percent(ratio: float) -> int:
    return round(ratio * 100)


def _network_title(network: Network) -> str:
    return network.value.capitalize()


def _price_section(settings: AppSettings, leg: TokenPayout) -> str:
    token = leg.token
    block = leg.quote.block
    amount = f"{leg.allocation.unit_amount:.4f}"
    return "\n".join(
        [
            _underline(_network_title(leg.network)),
            f"- {token.value} EMA{settings.price_ema_window} price block: {block}",
            f"- {price_converter_url(settings, leg.network, token, block)}",
            f"- {_percent(leg.allocation.ratio)}% share in {token.value}: {amount}",
            f"- {price_converter_url(settings, leg.network, token, block, value=amount)}",
        ]
    )


def _proposal_section(request: PayoutRequest, leg: TokenPayout, *, proxied: bool) -> str:
    calls = leg.calls
    propose = calls.proxy_propose if proxied and calls.proxy_propose is not None else calls.propose
    prefix = "Proxy " if proxied else ""
    lines = [_underline(f"{_network_title(leg.network)} {prefix}Council Proposal")]
    if proxied and request.proxy is not None:
        lines.append(f"- Proxy Address: {request.proxy.real}")
    lines.extend(
        [
            f"- Amount: {leg.allocation.unit_amount:.4f} {leg.token.value} "
            f"({leg.smallest_unit_amount} smallest units)",
            f"- Recipient: {request.recipient}",
            f"- {prefix}Council Proposal Call Data: {propose.payload_hex}",
            f"- {prefix}Decode Link: {decode_link(leg.network, propose.payload_hex)}",
        ]
    )
    return "\n".join(lines)


def _follow_up_section(leg: TokenPayout) -> str:
    calls = leg.calls
    network = leg.network
    return "\n".join(
        [
            _underline(f"{_network_title(network)} Follow-up Calls"),
            f"- Vote (proposal index {leg.counters.proposal_index}): "
            f"{decode_link(network, calls.vote.payload_hex)}",
            f"- Close (proposal index {leg.counters.proposal_index}): "
            f"{decode_link(network, calls.close.payload_hex)}",
            f"- Payout (spend index {leg.counters.spend_index}): "
            f"{decode_link(network, calls.payout.payload_hex)}",
        ]
    )


def render_native_summary(
    settings: AppSettings,
    request: PayoutRequest,
    legs: Sequence[TokenPayout],
    warnings: Sequence[str],
) -> str:
    header = [f"USD Amount: {request.usd_amount:.2f}"]
    header += [f"{leg.token.value} Allocation: {leg.allocation.usd_share:.2f} USD" for leg in legs]
    header += [
        f"{leg.token.value} EMA{settings.price_ema_window} Price: {leg.quote.price:.4f} USD"
        for leg in legs
    ]
    header += [f"{leg.token.value} Amount: {leg.allocation.unit_amount:.4f}" for leg in legs]
    header += [f"{_network_title(leg.network)} Block: {leg.quote.block}" for leg in legs]

    sections = [
        _banner("PAYOUT CALCULATION RESULTS"),
        "\n".join(header),
        *[_price_section(settings, leg) for leg in legs],
        _banner("COUNCIL PROPOSAL CALL DATA"),
        *[_proposal_section(request, leg, proxied=False) for leg in legs],
    ]
    if request.proxy is not None:
        sections += [_proposal_section(request, leg, proxied=True) for leg in legs]
    sections += [_follow_up_section(leg) for leg in legs]
    sections += [_warnings_section(warnings), BANNER_RULE]
    return "\n\n".join(sections)


def render_stable_summary(
    request: PayoutRequest,
    leg: TokenPayout,
    warnings: Sequence[str],
) -> str:
    header = "\n".join(
        [
            f"USD Amount: {request.usd_amount:.2f}",
            f"{leg.token.value} Amount: {leg.allocation.unit_amount:.2f}",
            f"{_network_title(leg.network)} Block: {leg.quote.block}",
        ]
    )
    sections = [
        _banner(f"{leg.token.value} PAYOUT CALCULATION RESULTS"),
        header,
        _proposal_section(request, leg, proxied=False),
    ]
    if request.proxy is not None:
        sections.append(_proposal_section(request, leg, proxied=True))
    sections += [_follow_up_section(leg), _warnings_section(warnings), BANNER_RULE]
    return "\n\n".join(sections)


def _warnings_section(warnings: Sequence[str]) -> str:
    return "\n".join([_underline("Operator Notes"), *[f"- {warning}" for warning in warnings]])


def _fx_line(request: PayoutRequest) -> str:
    fx = request.fx
    if fx is None or fx.input_currency.upper() == "USD":
        return f"Your payout is a grand total of USD {request.usd_amount:,.2f}."

    source = f"source: {fx.source}" if fx.source else "source: unknown"
    if fx.as_of:
        source = f"{source} - {fx.as_of}"
    return (
        f"Your payout is a grand total of {fx.input_currency.upper()} {fx.input_amount:,.2f} "
        f"which was converted to USD {request.usd_amount:,.2f} at an exchange rate of "
        f"{fx.rate:.4f} {fx.input_currency.upper()}/USD ({source})."
    )


def render_native_forum_reply(
    settings: AppSettings,
    request: PayoutRequest,
    legs: Sequence[TokenPayout],
) -> str:
    ratio = ":".join(str(_percent(leg.allocation.ratio)) for leg in legs)
    token_names = " and ".join(leg.token.value for leg in legs)
    prices = " and ".join(
        f"[${leg.quote.price:.4f}]"
        f"({price_converter_url(settings, leg.network, leg.token, leg.quote.block)}) "
        f"for {leg.token.value} at block {leg.quote.block}"
        for leg in legs
    )
    amounts = " and ".join(f"{leg.allocation.unit_amount:,.4f} {leg.token.value}" for leg in legs)
    return "\n\n".join(
        [
            f"Hey @{short_address(request.recipient)}",
            _fx_line(request),
            f"That USD total was divided between {token_names} tokens in a {ratio} ratio.\n"
            f"We've captured {settings.price_ema_window}d EMA prices at {prices}. "
            f"This will result in a payout of {amounts}.",
            "Both proposals were put on-chain moments ago and are currently awaiting additional "
            "votes of members of the Treasury Council. Expect their confirmations and payouts to "
            "hit your wallets *very* soon.",
            FORUM_SIGNATURE,
        ]
    )


def render_stable_forum_reply(request: PayoutRequest, leg: TokenPayout) -> str:
    return "\n\n".join(
        [
            f"Hey @{short_address(request.recipient)}",
            f"Your payout of USD {request.usd_amount:,.2f} will be sent as "
            f"{leg.allocation.unit_amount:,.2f} {leg.token.value} to your address on "
            f"{_network_title(leg.network)}.",
            "The proposal has been submitted on-chain and is awaiting approval from "
            f"{request.council.threshold} Treasury Council members. This is expected to happen "
            "very soon.",
            FORUM_SIGNATURE,
        ]
    )
