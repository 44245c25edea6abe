import time
from typing import List

from scoreboard import db, socketio
from scoreboard.models import Rating
from .recompute import recompute_many


_worker_started = False


def reconcile_stale_ratings() -> List[int]:
    """Recompute every rating flagged ``results_stale``.

    Returns the ids that are clean afterwards. Ratings that fail again stay
    flagged for the next pass.
    """
    stale_ids = [rid for (rid,) in db.session.query(Rating.id).filter(Rating.results_stale.is_(True)).all()]
    if not stale_ids:
        return []
    failed = recompute_many(stale_ids)
    return [rid for rid in stale_ids if rid not in failed]


def start_reconcile_worker(app) -> None:
    """Run ``reconcile_stale_ratings`` every RECONCILE_INTERVAL_SEC seconds.

    - No-ops when the interval is 0 or in TESTING mode
    - Starts at most one worker per process
    """
    global _worker_started
    try:
        interval = int(app.config.get('RECONCILE_INTERVAL_SEC', 0))
    except (TypeError, ValueError):
        interval = 0
    if interval <= 0 or app.config.get('TESTING') or _worker_started:
        return
    _worker_started = True

    def _worker(delay: int):
        while True:
            time.sleep(delay)
            with app.app_context():
                try:
                    fixed = reconcile_stale_ratings()
                    if fixed:
                        app.logger.info(f"[reconcile] repaired ratings={fixed}")
                except Exception as exc:
                    app.logger.error(f"[reconcile-failed] error={exc}")
                finally:
                    db.session.remove()

    app.logger.info(f"[reconcile-set] interval={interval}s")
    socketio.start_background_task(_worker, interval)
