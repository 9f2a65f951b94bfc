"""
DOA Estimation REST API Server

HTTP front end for the estimation engine:
- Single-run estimation (MUSIC, Root-MUSIC, ESPRIT on one dataset)
- Multi-trial comparison sweeps
- Runtime configuration and statistics
"""

import logging
import time
from typing import Dict, Any, Optional

from flask import Flask, request, jsonify

from .config import EngineConfig, Parameters, SweepParameter, SWEEP_PRESETS, parse_seed
from .engine import DoaEngine, best_algorithm
from .errors import DoaError, InvalidParameters

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class DoaService:
    """
    DOA estimation service

    Translates wire dicts into engine calls and engine results back into
    wire dicts. Invalid input produces an "invalid" status, anything else
    that goes wrong an "error" status.
    """

    def __init__(
        self,
        engine_config: Optional[EngineConfig] = None,
        base_params: Optional[Parameters] = None
    ):
        self.engine = DoaEngine(engine_config)
        self.base_params = (base_params or Parameters()).validate()

        self.stats = self._empty_stats()

        logger.info("DoaService initialized")

    @staticmethod
    def _empty_stats() -> Dict[str, Any]:
        return {
            "estimations": 0,
            "comparisons": 0,
            "errors": 0,
            "rest_requests": 0,
            "start_time": time.time(),
        }

    def estimate(self, request_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run all three estimators on one simulated dataset

        Expected format:
        {
            "snapshots": 300,
            "arrayElements": 10,
            "snr": 20,
            "sourceAngles": [20, 40, 60],
            "carrierFreq": 1.0,
            "arraySpacing": 0.5,
            "seed": 42                     # optional
        }
        """
        try:
            params = Parameters.from_dict(request_data, base=self.base_params)
            results = self.engine.run_doa_estimation(params, seed=parse_seed(request_data.get("seed")))
            self.stats["estimations"] += 1

            best = best_algorithm(results)
            logger.info(
                f"Estimation for {list(params.source_angles)}: "
                + ", ".join(f"{r.algorithm.value}={r.rmse:.3f}" for r in results)
            )

            return {
                "status": "success",
                "params": params.to_dict(),
                "results": [r.to_dict() for r in results],
                "bestAlgorithm": best.algorithm.value if best else None,
            }

        except InvalidParameters as e:
            self.stats["errors"] += 1
            logger.warning(f"Rejected estimation request: {e}")
            return {"status": "invalid", "error": str(e)}

        except DoaError as e:
            self.stats["errors"] += 1
            logger.error(f"Error during estimation: {e}")
            return {"status": "error", "error": str(e)}

    def compare(self, request_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run a comparison sweep

        Expected format:
        {
            "parameter": "snr",            # snr, snapshots, arrayElements, sourceSpacing
            "values": [0, 10, 20],         # optional, defaults to the preset
            "params": {...},               # optional base parameters
            "trials": 5,                   # optional
            "seed": 7                      # optional
        }
        """
        try:
            if "parameter" not in request_data:
                raise InvalidParameters("Missing 'parameter'")
            sweep = SweepParameter.parse(request_data["parameter"])
            values = request_data.get("values", SWEEP_PRESETS[sweep]["values"])
            base_data = request_data.get("params", {})
            if not isinstance(base_data, dict):
                raise InvalidParameters(f"params must be an object, got {base_data!r}")
            base = Parameters.from_dict(base_data, base=self.base_params)

            rows = self.engine.run_comparison_analysis(
                sweep,
                values,
                base,
                trials=request_data.get("trials"),
                seed=parse_seed(request_data.get("seed")),
            )
            self.stats["comparisons"] += 1

            return {
                "status": "success",
                "parameter": sweep.value,
                "rows": [row.to_dict() for row in rows],
            }

        except InvalidParameters as e:
            self.stats["errors"] += 1
            logger.warning(f"Rejected comparison request: {e}")
            return {"status": "invalid", "error": str(e)}

        except DoaError as e:
            self.stats["errors"] += 1
            logger.error(f"Error during comparison: {e}")
            return {"status": "error", "error": str(e)}

    def get_statistics(self) -> Dict[str, Any]:
        """Get service statistics"""
        uptime = time.time() - self.stats["start_time"]

        return {
            **self.stats,
            "uptime_seconds": uptime,
            "engine_stats": self.engine.get_statistics(),
        }

    def reset(self):
        self.engine.reset_statistics()
        self.stats = self._empty_stats()


def _status_code(result: Dict[str, Any]) -> int:
    return {"success": 200, "invalid": 400}.get(result["status"], 500)


def _json_object() -> Optional[Dict[str, Any]]:
    """Request body as a dict, None unless it is a JSON object"""
    if not request.is_json:
        return None
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


# Flask application
app = Flask(__name__)
service: Optional[DoaService] = None


def get_service() -> DoaService:
    """Get or create service instance"""
    global service
    if service is None:
        service = DoaService()
    return service


@app.route('/health', methods=['GET'])
def health():
    """Health check endpoint"""
    from . import __version__

    return jsonify({
        "status": "healthy",
        "service": "subspace-doa",
        "version": __version__,
    })


@app.route('/doa/estimate', methods=['POST'])
def doa_estimate():
    """Estimate source directions with all three algorithms"""
    data = _json_object()
    if data is None:
        return jsonify({"status": "error", "error": "JSON object required"}), 400

    get_service().stats["rest_requests"] += 1
    result = get_service().estimate(data)
    return jsonify(result), _status_code(result)


@app.route('/doa/compare', methods=['POST'])
def doa_compare():
    """Compare algorithm RMSE across a parameter sweep"""
    data = _json_object()
    if data is None:
        return jsonify({"status": "error", "error": "JSON object required"}), 400

    get_service().stats["rest_requests"] += 1
    result = get_service().compare(data)
    return jsonify(result), _status_code(result)


@app.route('/sweeps', methods=['GET'])
def sweeps():
    """Preset sweep values per parameter"""
    return jsonify({sweep.value: preset for sweep, preset in SWEEP_PRESETS.items()})


@app.route('/statistics', methods=['GET'])
def statistics():
    """Get service statistics"""
    return jsonify(get_service().get_statistics())


@app.route('/config', methods=['GET', 'PUT'])
def config():
    """Get or update engine configuration"""
    service_instance = get_service()

    if request.method == 'GET':
        return jsonify({
            "engine": service_instance.engine.config.to_dict(),
            "base_params": service_instance.base_params.to_dict(),
        })

    updates = _json_object()
    if updates is None:
        return jsonify({"status": "error", "error": "JSON object required"}), 400

    try:
        merged = service_instance.engine.config.to_dict()
        estimator_updates = updates.pop("estimator", {})
        merged.update(updates)
        merged["estimator"].update(estimator_updates)
        service_instance.engine = DoaEngine(EngineConfig.from_dict(merged))
    except InvalidParameters as e:
        return jsonify({"status": "error", "error": str(e)}), 400

    return jsonify({"status": "success", "message": "Configuration updated"})


@app.route('/reset', methods=['POST'])
def reset():
    """Reset statistics"""
    get_service().reset()
    return jsonify({"status": "success", "message": "Statistics reset"})


def create_app(config: Optional[Dict] = None) -> Flask:
    """Create Flask application with optional configuration"""
    global service

    engine_config = EngineConfig.from_dict(config.get("engine", {}) if config else {})
    base_params = Parameters.from_dict(config.get("params", {})) if config else None

    service = DoaService(engine_config=engine_config, base_params=base_params)

    return app
