"""In-memory evaluation of campaign targeting rules."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .schema import ACTIVE, Campaign, CampaignResponse, DeliveryRequest, TargetingRule


def evaluate_rule(request: DeliveryRequest, rule: TargetingRule) -> bool:
    """True if the request passes every exclude and include restriction."""
    excludes = (
        (rule.exclude_country, request.country),
        (rule.exclude_os, request.os),
        (rule.exclude_app, request.app_id),
    )
    if any(value in excluded for excluded, value in excludes):
        return False
    includes = (
        (rule.include_country, request.country),
        (rule.include_os, request.os),
        (rule.include_app, request.app_id),
    )
    return all(not included or value in included for included, value in includes)


def match_campaigns(
    request: DeliveryRequest,
    campaigns: Iterable[Campaign],
    rules: Mapping[str, TargetingRule],
) -> list[CampaignResponse]:
    """Active campaigns the request qualifies for, in the given order.

    A campaign without a rule has no restrictions.
    """
    return [
        CampaignResponse(cid=campaign.id, img=campaign.image_url, cta=campaign.cta)
        for campaign in campaigns
        if campaign.status == ACTIVE
        and (campaign.id not in rules or evaluate_rule(request, rules[campaign.id]))
    ]