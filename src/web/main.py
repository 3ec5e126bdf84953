import logging
import os
from typing import Any

import numpy as np
from fastapi import FastAPI, HTTPException
from fastapi.responses import Response

try:
    from ..flow.builder import FlowLayout, FlowLayoutBuilder
    from ..flow.exceptions import FlowLayoutError
    from ..flow.verification import LayoutVerifier
    from ..storage.database import FlowDatabase
except ImportError:
    from flow.builder import FlowLayout, FlowLayoutBuilder
    from flow.exceptions import FlowLayoutError
    from flow.verification import LayoutVerifier
    from storage.database import FlowDatabase

logger = logging.getLogger(__name__)

DATABASE_PATH_ENV = "RCV_FLOW_DATABASE_PATH"


def convert_numpy_types(obj: Any) -> Any:
    """Convert numpy types to native Python types for JSON serialization."""
    if isinstance(obj, np.bool_):
        return bool(obj)
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return float(obj)
    elif isinstance(obj, dict):
        return {k: convert_numpy_types(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [convert_numpy_types(item) for item in obj]
    else:
        return obj


app = FastAPI(
    title="Ranked Choice Vote Flow",
    description="Layout data for ranked-choice vote flow diagrams",
)

# Global database path; falls back to RCV_FLOW_DATABASE_PATH
db_path = None


def get_database() -> FlowDatabase:
    """Open the configured database read-only."""
    path = db_path or os.environ.get(DATABASE_PATH_ENV)
    if not path:
        raise HTTPException(status_code=500, detail="Database not configured")
    return FlowDatabase(path, read_only=True)


def set_database_path(path: str):
    """Set the database path for the application."""
    global db_path
    db_path = path
    os.environ[DATABASE_PATH_ENV] = path
    logger.info(f"Database path set to: {path}")

    try:
        with FlowDatabase(path, read_only=True) as test_db:
            test_db.table_exists("vote_records")
        logger.info("Database connection test successful")
    except Exception as e:
        logger.error(f"Database connection test failed: {e}")
        raise


def get_layout() -> FlowLayout:
    """Build the layout from the stored vote tables."""
    with get_database() as database:
        if not database.has_records():
            raise HTTPException(status_code=400, detail="No data loaded")
        votes, transfers = database.load_records()
        config = database.load_config()

    try:
        return FlowLayoutBuilder(config).build(votes, transfers)
    except FlowLayoutError as e:
        logger.error(f"Error building flow layout: {e}")
        raise HTTPException(status_code=422, detail=f"Layout failed: {str(e)}")


def require_flow_round(layout: FlowLayout, round_number: int):
    if not layout.starting_round <= round_number < layout.final_round:
        raise HTTPException(
            status_code=404,
            detail=f"No flows out of round {round_number}",
        )


@app.get("/api/layout")
async def get_flow_layout():
    """Complete layout for rendering."""
    return get_layout().to_dict()


@app.get("/api/candidates")
async def get_candidates():
    """Candidates in display order, sentinel last."""
    layout = get_layout()
    return {
        "candidates": list(layout.candidate_order),
        "sentinel": layout.config.sentinel,
    }


@app.get("/api/rounds")
async def get_rounds():
    """Per-round totals and eliminations."""
    layout = get_layout()
    return [
        {
            "round": round_number,
            "x": layout.round_x(round_number),
            "total": layout.round_total(round_number),
            "eliminated": layout.eliminated_by_round.get(round_number),
        }
        for round_number in layout.rounds
    ]


@app.get("/api/rounds/{round_number}/transfers")
async def get_round_transfers(round_number: int):
    """Transfers out of the candidate eliminated in a round."""
    layout = get_layout()
    require_flow_round(layout, round_number)

    transfers = layout.transfers_for_round(round_number)
    return {
        "round": round_number,
        "eliminated": layout.eliminated_by_round.get(round_number),
        "transfers": [link.to_dict() for link in transfers],
        "transfer_count": len(transfers),
        "votes_transferred": sum(link.votes for link in transfers),
    }


@app.get("/api/rounds/{round_number}/highlight")
async def get_round_highlight(round_number: int):
    """Element identifiers to keep visible when a round's transfers are focused."""
    layout = get_layout()
    require_flow_round(layout, round_number)

    highlight = layout.highlight_round(round_number)
    return {
        "round": highlight.round,
        "highlighted": sorted(highlight.highlighted),
        "revealed_percentages": sorted(highlight.revealed_percentages),
    }


@app.get("/api/finalists")
async def get_finalists(count: int = 2):
    """Leading candidates of the final round."""
    if count < 1:
        raise HTTPException(status_code=400, detail="count must be positive")
    layout = get_layout()
    return [
        {
            "candidate": finalist.candidate,
            "votes": finalist.votes,
            "share": finalist.share,
            "y1": finalist.y1,
        }
        for finalist in layout.finalists(count)
    ]


@app.get("/api/summary")
async def get_summary():
    """One row per vote block."""
    return convert_numpy_types(get_layout().round_summary().to_dict("records"))


@app.get("/api/verify")
async def verify_layout():
    """Check the layout against the vote conservation invariants."""
    return LayoutVerifier(get_layout()).verify()


@app.get("/api/export/links")
async def export_links():
    """Export every link as CSV."""
    csv_text = get_layout().link_table().to_csv(index=False)
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="flow_links.csv"'},
    )
