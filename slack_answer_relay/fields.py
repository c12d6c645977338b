"""Form field vocabulary and FieldSet helpers."""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Mapping, Tuple

FieldSet = Dict[str, str]

# Canonical field names, in the order they are presented to the backend.
FIELD_VOCABULARY: Tuple[str, ...] = (
    "概要",
    "当選者",
    "応募者情報抽出",
    "応募者選定情報",
    "個人情報管理",
    "問い合わせ内容",
    "DM送付",
    "発送対応",
    "オプション",
    "商品カテゴリ",
    "商品",
)

# Suffix the form generator emits for questions the submitter left blank.
PLACEHOLDER_SUFFIX = "への回答"

# Canonical name -> variable name expected by the backend's chat flow. The
# misspellings match the variables defined in the deployed flow.
DEFAULT_BACKEND_FIELD_MAPPING: Dict[str, str] = {
    "当選者": "prize_winner",
    "応募者情報抽出": "applicant_extravtion",
    "応募者選定情報": "applicant_select",
    "個人情報管理": "personal_infomation",
    "問い合わせ内容": "inquiry_details",
    "DM送付": "send_dm",
    "発送対応": "shipping_correspondence",
    "オプション": "option",
    "商品カテゴリ": "product_category",
    "商品": "product",
}

# Alternative input names accepted from workflow webhook steps.
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "概要": ("summary",),
    "当選者": ("prize_winner",),
    "応募者情報抽出": ("applicant_extravtion", "applicant_extraction"),
    "応募者選定情報": ("applicant_select",),
    "個人情報管理": ("personal_infomation", "personal_information"),
    "問い合わせ内容": ("inquiry_details",),
    "DM送付": ("send_dm",),
    "発送対応": ("shipping_correspo", "shipping_correspondence"),
    "オプション": ("option",),
    "商品カテゴリ": ("product_category",),
    "商品": ("product",),
}


def clean_value(value: Any) -> str | None:
    """Return the trimmed value, or None when it carries no answer."""

    if value is None:
        return None
    text = str(value).strip()
    if not text or text.endswith(PLACEHOLDER_SUFFIX):
        return None
    return text


def clean_fields(raw: Mapping[str, Any]) -> FieldSet:
    """Drop empty and placeholder values, trimming everything that remains."""

    cleaned: FieldSet = {}
    for name, value in raw.items():
        key = str(name).strip()
        text = clean_value(value)
        if key and text is not None:
            cleaned[key] = text
    return cleaned


def collect_submission_fields(inputs: Mapping[str, Any]) -> FieldSet:
    """Normalise workflow webhook inputs onto the canonical vocabulary."""

    collected: FieldSet = {}
    for name in FIELD_VOCABULARY:
        for candidate in (name, *FIELD_ALIASES.get(name, ())):
            text = clean_value(inputs.get(candidate))
            if text is not None:
                collected[name] = text
                break
    return collected


def ordered_items(fields: Mapping[str, str]) -> Iterator[Tuple[str, str]]:
    """Yield fields in vocabulary order, then unknown names in insertion order."""

    for name in FIELD_VOCABULARY:
        if name in fields:
            yield name, fields[name]
    for name, value in fields.items():
        if name not in FIELD_VOCABULARY:
            yield name, value


def map_field_names(fields: Mapping[str, str], mapping: Mapping[str, str]) -> Dict[str, str]:
    """Translate canonical names to backend names; unmapped names pass through."""

    return {mapping.get(name, name): value for name, value in ordered_items(fields)}


def field_names(fields: Mapping[str, str]) -> List[str]:
    return [name for name, _ in ordered_items(fields)]
