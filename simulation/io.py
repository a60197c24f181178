"""
CSV serialization and parsing for the five raw tables.

Wire format: header line plus one line per row joined with ``\\n``; a field
is quoted only when it contains a comma, quote or newline (internal quotes
doubled); booleans are written ``true`` / ``false``.
"""

import io
import logging
from pathlib import Path
from typing import Dict, List, Union

import pandas as pd

from .errors import MalformedInputError
from .schema import (
    PlayerRow, EventRow, PaymentRow, UACostRow, LabelRow,
    TABLE_COLUMNS, REQUIRED_COLUMNS,
)

logger = logging.getLogger(__name__)

TABLE_FILENAMES = {
    'players': 'game-players.csv',
    'events': 'game-events.csv',
    'payments': 'game-payments.csv',
    'ua_costs': 'game-ua-costs.csv',
    'labels': 'game-labels.csv',
}

TableSource = Union[str, pd.DataFrame]


def _format_value(value) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _escape(text: str) -> str:
    if ',' in text or '"' in text or '\n' in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def serialize_table(kind: str, rows: List) -> str:
    """Serialize a list of row dataclasses of table ``kind`` to CSV text."""
    columns = TABLE_COLUMNS[kind]
    lines = [','.join(columns)]
    for row in rows:
        lines.append(','.join(_escape(_format_value(getattr(row, c))) for c in columns))
    return '\n'.join(lines)


def serialize_players_csv(rows: List[PlayerRow]) -> str:
    return serialize_table('players', rows)


def serialize_events_csv(rows: List[EventRow]) -> str:
    return serialize_table('events', rows)


def serialize_payments_csv(rows: List[PaymentRow]) -> str:
    return serialize_table('payments', rows)


def serialize_ua_costs_csv(rows: List[UACostRow]) -> str:
    return serialize_table('ua_costs', rows)


def serialize_labels_csv(rows: List[LabelRow]) -> str:
    return serialize_table('labels', rows)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _load_frame(kind: str, source: TableSource) -> pd.DataFrame:
    """Read CSV text (or take a DataFrame) as strings and check required columns."""
    if isinstance(source, pd.DataFrame):
        frame = source.astype(str)
    elif not source.strip():
        frame = pd.DataFrame(columns=TABLE_COLUMNS[kind])
    else:
        frame = pd.read_csv(io.StringIO(source), dtype=str, keep_default_na=False)

    missing = [c for c in REQUIRED_COLUMNS[kind] if c not in frame.columns]
    if missing:
        raise MalformedInputError(kind, missing)
    return frame


def _as_float(value, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_int(value, default: int = 0) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _as_bool(value) -> bool:
    return str(value).strip().lower() in ('true', '1')


def _records(frame: pd.DataFrame) -> List[Dict[str, str]]:
    return frame.to_dict('records')


def parse_players(source: TableSource) -> List[PlayerRow]:
    frame = _load_frame('players', source)
    return [
        PlayerRow(
            game_user_id=r['game_user_id'],
            install_id=r.get('install_id', ''),
            install_time=r['install_time'],
            campaign_id=r.get('campaign_id', 'unknown') or 'unknown',
            adset_id=r.get('adset_id', 'unknown') or 'unknown',
            creative_id=r.get('creative_id', 'unknown') or 'unknown',
            channel=r.get('channel', 'organic') or 'organic',
            country=r.get('country', 'US') or 'US',
            os=r.get('os', 'android') or 'android',
            device_model=r.get('device_model', ''),
            device_tier=r.get('device_tier', 'mid') or 'mid',
            consent_tracking=_as_bool(r.get('consent_tracking', 'false')),
            consent_marketing=_as_bool(r.get('consent_marketing', 'false')),
        )
        for r in _records(frame)
    ]


def parse_events(source: TableSource) -> List[EventRow]:
    frame = _load_frame('events', source)
    return [
        EventRow(
            game_user_id=r['game_user_id'],
            event_time=r['event_time'],
            event_name=r['event_name'],
            session_id=r.get('session_id', ''),
            params=r.get('params', ''),
        )
        for r in _records(frame)
    ]


def parse_payments(source: TableSource) -> List[PaymentRow]:
    frame = _load_frame('payments', source)
    return [
        PaymentRow(
            game_user_id=r['game_user_id'],
            txn_time=r['txn_time'],
            amount_usd=_as_float(r['amount_usd']),
            product_sku=r.get('product_sku', ''),
            payment_channel=r.get('payment_channel', ''),
            is_refund=_as_bool(r.get('is_refund', 'false')),
        )
        for r in _records(frame)
    ]


def parse_ua_costs(source: TableSource) -> List[UACostRow]:
    frame = _load_frame('ua_costs', source)
    return [
        UACostRow(
            campaign_id=r['campaign_id'],
            date=r['date'],
            spend=_as_float(r['spend']),
            impressions=_as_int(r.get('impressions')),
            clicks=_as_int(r.get('clicks')),
            installs=_as_int(r.get('installs')),
        )
        for r in _records(frame)
    ]


def parse_labels(source: TableSource) -> List[LabelRow]:
    frame = _load_frame('labels', source)
    rows = []
    for r in _records(frame):
        ltv30 = _as_float(r['ltv_d30'])
        ltv90 = _as_float(r['ltv_d90'])
        rows.append(LabelRow(
            game_user_id=r['game_user_id'],
            install_date=r.get('install_date', ''),
            ua_cost=_as_float(r.get('ua_cost')),
            ltv_d3=_as_float(r.get('ltv_d3')),
            ltv_d7=_as_float(r.get('ltv_d7')),
            ltv_d30=ltv30,
            ltv_d90=ltv90,
            is_payer_by_d3=_as_int(r.get('is_payer_by_d3')),
            is_payer_by_d7=_as_int(r.get('is_payer_by_d7')),
            is_payer_by_d30=_as_int(r.get('is_payer_by_d30'), int(ltv30 > 0)),
            is_payer_by_d90=_as_int(r.get('is_payer_by_d90'), int(ltv90 > 0)),
            profit_d90=_as_float(r.get('profit_d90'), ltv90),
            late_monetizer_flag=_as_int(r.get('late_monetizer_flag')),
            false_early_payer_flag=_as_int(r.get('false_early_payer_flag')),
            active_days_w7d=_as_int(r.get('active_days_w7d')),
            sessions_cnt_w7d=_as_int(r.get('sessions_cnt_w7d')),
            max_level_w7d=_as_int(r.get('max_level_w7d')),
        ))
    return rows


PARSERS = {
    'players': parse_players,
    'events': parse_events,
    'payments': parse_payments,
    'ua_costs': parse_ua_costs,
    'labels': parse_labels,
}


def parse_table(kind: str, source: TableSource) -> List:
    if kind not in PARSERS:
        raise ValueError(f"Unknown table: {kind}. Available: {', '.join(PARSERS)}")
    return PARSERS[kind](source)


# ---------------------------------------------------------------------------
# Directory export / import
# ---------------------------------------------------------------------------

def write_tables(result, directory) -> Dict[str, Path]:
    """Write the five tables of a generation result under fixed filenames."""
    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)

    paths = {}
    for kind, filename in TABLE_FILENAMES.items():
        path = out_dir / filename
        path.write_text(serialize_table(kind, getattr(result, kind)), encoding='utf-8')
        paths[kind] = path

    logger.info("Wrote %d tables to %s", len(paths), out_dir)
    return paths


def read_tables(directory) -> Dict[str, List]:
    """Read the five tables written by ``write_tables`` back into typed rows."""
    in_dir = Path(directory)
    tables = {}
    for kind, filename in TABLE_FILENAMES.items():
        path = in_dir / filename
        if not path.exists():
            raise FileNotFoundError(f"Missing table file: {path}")
        tables[kind] = parse_table(kind, path.read_text(encoding='utf-8'))
    return tables
