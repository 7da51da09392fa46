"""
Unified target selection.

Cloud targets and directory groups are shown to the user as one flat,
sorted list of labels. The chosen label is mapped back to the item it was
rendered from.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Protocol, Sequence, Tuple, Union

from grant.errors import NotFound, SelectionFailed
from grant.models import GROUPS_PROVIDER, EligibleCloudTarget, EligibleGroupTarget

WORKSPACE_LABELS = {
    "subscription": "Subscription",
    "resource_group": "Resource Group",
    "management_group": "Management Group",
    "directory": "Directory",
    "resource": "Resource",
    "account": "Account",
}


@dataclass(frozen=True)
class CloudSelection:
    target: EligibleCloudTarget


@dataclass(frozen=True)
class GroupSelection:
    group: EligibleGroupTarget


SelectionItem = Union[CloudSelection, GroupSelection]


class ItemChooser(Protocol):
    def choose(self, labels: Sequence[str]) -> str: ...


def format_cloud_target(target: EligibleCloudTarget) -> str:
    kind = WORKSPACE_LABELS.get(target.workspace_type.lower(), target.workspace_type)
    label = f"{kind}: {target.workspace_name} / Role: {target.role_name}"
    if target.provider:
        return f"{label} ({target.provider.lower()})"
    return label


def format_group_target(group: EligibleGroupTarget) -> str:
    if group.directory_name:
        label = f"Directory: {group.directory_name} / Group: {group.group_name}"
    else:
        label = f"Group: {group.group_name}"
    # Groups sit next to other providers' targets, so always tag them.
    return f"{label} ({GROUPS_PROVIDER})"


def format_item(item: SelectionItem) -> str:
    if isinstance(item, CloudSelection):
        return format_cloud_target(item.target)
    if isinstance(item, GroupSelection):
        return format_group_target(item.group)
    raise TypeError(f"unsupported selection item: {item!r}")


def build_options(items: Sequence[SelectionItem]) -> Tuple[List[str], List[SelectionItem]]:
    """Labels and items sorted together by label.

    ``sorted`` is stable, so equal labels keep their input order.
    """
    pairs = sorted(((format_item(item), item) for item in items), key=lambda pair: pair[0])
    return [label for label, _ in pairs], [item for _, item in pairs]


def find_by_display(items: Sequence[SelectionItem], label: str) -> SelectionItem:
    for item in items:
        if format_item(item) == label:
            return item
    raise NotFound(f"item not found: {label}")


class UnifiedSelector:
    """Presents selection items through a chooser and resolves the pick."""

    def __init__(self, chooser: ItemChooser):
        self.chooser = chooser

    def select_item(self, items: Sequence[SelectionItem]) -> SelectionItem:
        if not items:
            raise SelectionFailed("nothing to select from")
        labels, ordered = build_options(items)
        try:
            chosen = self.chooser.choose(labels)
        except (KeyboardInterrupt, EOFError) as e:
            raise SelectionFailed("selection aborted") from e
        except Exception as e:
            raise SelectionFailed(f"selection failed: {e}") from e
        # Resolve against the sorted list the user saw.
        return find_by_display(ordered, chosen)
