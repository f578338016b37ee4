from flask import Blueprint, current_app, jsonify, request

from kasir.errors import PosError
from kasir.services import reporting_service
from kasir.validation import parse_positive_int


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/stats")
def dashboard_stats():
    try:
        period = parse_positive_int(
            request.args.get("period"),
            name="period",
            default=current_app.config["DASHBOARD_DEFAULT_PERIOD_DAYS"],
            maximum=current_app.config["DASHBOARD_MAX_PERIOD_DAYS"],
        )
        return jsonify(reporting_service.summarize(period)), 200
    except PosError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        current_app.logger.exception("Failed to fetch dashboard statistics")
        return jsonify({"error": "Failed to fetch dashboard statistics"}), 500
