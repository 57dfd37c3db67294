#!/usr/bin/env python3
"""
Image bouncer admission webhook.

Rejects pods whose images use the ``latest`` tag or come from a registry
outside the configured whitelist.
"""

import argparse
import logging
import time
from typing import Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from imagebouncer.config import AdmissionConfig
from imagebouncer.engine import DecisionEngine
from imagebouncer.metrics import MetricsCollector
from imagebouncer.models import (
    ADMISSION_API_VERSIONS,
    AdmissionRequest,
    AdmissionReview,
    Pod,
    PodSpec,
)
from imagebouncer.notifier import Notifier, build_notifier
from imagebouncer.server import WebServer
from imagebouncer.validators.base import InputError, Verdict

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


class MalformedReviewError(Exception):
    """The body is not an AdmissionReview carrying a request."""


class UnsupportedResourceError(InputError):
    """The request targets something other than a pod."""


class PodDecodeError(InputError):
    """The request object cannot be decoded into a pod."""


class AdmissionController:
    """Decodes admission reviews, runs the decision engine and encodes the answer."""

    def __init__(self, config: AdmissionConfig, notifier: Optional[Notifier] = None):
        self.config = config
        self.metrics = MetricsCollector()
        self.policy = config.policy
        self.notifier = notifier or build_notifier(config)
        self.engine = DecisionEngine(
            self.policy,
            notifier=self.notifier,
            notify_timeout=config.notify_budget,
            metrics=self.metrics,
        )

        logger.info(
            "Admission controller initialized: %d whitelisted namespaces, %d whitelisted registries",
            len(self.policy.whitelisted_namespaces),
            len(self.policy.whitelisted_registries),
        )

    def parse_review(self, body) -> AdmissionReview:
        """Validate the envelope; raises MalformedReviewError."""
        if not isinstance(body, dict):
            raise MalformedReviewError("Invalid admission review: expected a JSON object")

        try:
            review = AdmissionReview.model_validate(body)
        except ValidationError as e:
            raise MalformedReviewError(f"Invalid admission review: {e.error_count()} invalid fields") from e

        if review.request is None:
            raise MalformedReviewError("Invalid admission review: missing request")

        return review

    def decode_pod(self, request: AdmissionRequest) -> PodSpec:
        """Decode the request object into the engine's pod view."""
        kind = request.kind
        if kind.kind != "Pod" or kind.group:
            raise UnsupportedResourceError(
                f"Unsupported resource kind {kind.kind or 'unknown'}: only pods are validated"
            )

        if not request.raw_object:
            raise PodDecodeError("Admission request does not contain a pod object")

        try:
            pod = Pod.model_validate(request.raw_object)
        except ValidationError as e:
            raise PodDecodeError(f"Unable to decode pod: {e.error_count()} invalid fields") from e

        return PodSpec.from_pod(pod, namespace=request.namespace, name=request.name)

    async def validate_admission(self, body: Dict) -> Dict:
        """
        Main validation entry point.

        Args:
            body: decoded JSON body of the webhook call

        Returns:
            Admission review response

        Raises:
            MalformedReviewError: if the body is not a usable AdmissionReview
        """
        start_time = time.time()
        review = self.parse_review(body)
        request = review.request

        logger.debug(
            "Processing admission request: uid=%s, kind=%s, namespace=%s, operation=%s",
            request.uid,
            request.kind.kind or "unknown",
            request.namespace,
            request.operation or "unknown",
        )

        # Delete requests have object set to None so no images to check
        if request.operation == "DELETE":
            return self._build_response(review, Verdict.allow())

        try:
            pod = self.decode_pod(request)
            verdict = await self.engine.decide(pod)
        except InputError as e:
            logger.warning("Bad admission request %s: %s", request.uid, e)
            self.metrics.record_input_error(type(e).__name__)
            return self._build_response(review, allowed=False, status=self._bad_request_status(str(e)))

        elapsed = time.time() - start_time
        self.metrics.record_admission_decision(
            allowed=verdict.allowed, rule=verdict.rule, duration=elapsed
        )
        logger.debug(
            "Admission decision for %s: allowed=%s, duration=%.3fs", request.uid, verdict.allowed, elapsed
        )

        return self._build_response(review, verdict)

    def _build_response(
        self,
        review: AdmissionReview,
        verdict: Optional[Verdict] = None,
        allowed: bool = True,
        status: Optional[Dict] = None,
    ) -> Dict:
        """Build admission review response."""
        if verdict is not None:
            allowed = verdict.allowed
            if not allowed:
                status = self._rejection_status(verdict.reason)

        api_version = review.api_version
        if api_version not in ADMISSION_API_VERSIONS:
            api_version = ADMISSION_API_VERSIONS[0]

        response = {
            "apiVersion": api_version,
            "kind": "AdmissionReview",
            "response": {"uid": review.request.uid, "allowed": allowed},
        }

        if status:
            response["response"]["status"] = status

        return response

    @staticmethod
    def _rejection_status(message: str) -> Dict:
        return {
            "status": "Failure",
            "reason": "Invalid",
            "message": message,
            "details": {"causes": [{"message": message}]},
        }

    @staticmethod
    def _bad_request_status(message: str) -> Dict:
        return {
            "status": "Failure",
            "code": 400,
            "reason": "BadRequest",
            "message": message,
        }

    async def health_check(self) -> Dict:
        """Report webhook health."""
        return {
            "healthy": True,
            "notifier": self.notifier.__class__.__name__,
        }


class AdmissionWebhookServer(WebServer):
    """Async web server for admission webhook."""

    def __init__(self, config: AdmissionConfig, notifier: Optional[Notifier] = None):
        self.controller = AdmissionController(config, notifier=notifier)
        super().__init__(config)

    def _setup_routes(self):
        """Setup web routes."""
        self.app.add_api_route("/validate", self.handle_validate, methods=["POST"])
        self.app.add_api_route("/ping", self.handle_ping, methods=["GET"])
        self.app.add_api_route("/health", self.handle_health, methods=["GET"])
        if self.config.metrics_enabled:
            self.app.add_api_route("/metrics", self.handle_metrics, methods=["GET"])

    async def handle_validate(self, request: Request) -> JSONResponse:
        """Handle validation webhook requests."""
        content_type = request.headers.get("content-type", "")
        if content_type and not content_type.startswith("application/json"):
            return JSONResponse(
                content={"error": f"Unsupported content type {content_type}"},
                status_code=415,
            )

        try:
            admission_review = await request.json()
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError
            logger.error("Invalid JSON in request: %s", e)
            return JSONResponse(content={"error": "Invalid JSON"}, status_code=400)

        try:
            response = await self.controller.validate_admission(admission_review)
            return JSONResponse(content=response)

        except MalformedReviewError as e:
            logger.error("%s", e)
            return JSONResponse(content={"error": str(e)}, status_code=400)
        except Exception as e:
            logger.exception("Error handling validation request")

            # Return a valid admission response that denies the request
            return JSONResponse(
                content={
                    "apiVersion": "admission.k8s.io/v1",
                    "kind": "AdmissionReview",
                    "response": {
                        "uid": admission_review.get("request", {}).get("uid", "unknown"),
                        "allowed": False,
                        "status": {"message": f"Internal server error: {str(e)}"},
                    },
                }
            )

    async def handle_ping(self, request: Request) -> PlainTextResponse:
        """Liveness endpoint."""
        return PlainTextResponse(content="ok")

    async def handle_health(self, request: Request) -> JSONResponse:
        """Health check endpoint."""
        health_status = await self.controller.health_check()
        status_code = 200 if health_status["healthy"] else 503
        return JSONResponse(content=health_status, status_code=status_code)

    async def handle_metrics(self, request: Request) -> PlainTextResponse:
        """Prometheus metrics endpoint."""
        metrics = self.controller.metrics.export_prometheus()
        return PlainTextResponse(content=metrics, media_type="text/plain")


def create_app() -> FastAPI:
    """Create the webhook FastAPI app (for testing or programmatic use)."""
    config = AdmissionConfig()
    server = AdmissionWebhookServer(config)
    return server.app


def parse_args(argv: Optional[List[str]] = None) -> Dict:
    """Command line overrides for settings that also come from the environment."""
    parser = argparse.ArgumentParser(description="Image bouncer admission webhook")
    parser.add_argument("--tls-cert", dest="tls_cert_path", help="TLS certificate file")
    parser.add_argument("--tls-key", dest="tls_key_path", help="TLS key file")
    parser.add_argument("--port", dest="port", type=int, help="Port to listen on")
    args = parser.parse_args(argv)
    return {key: value for key, value in vars(args).items() if value is not None}


def run(argv: Optional[List[str]] = None):
    """Main entry point."""
    try:
        # Load configuration using Pydantic
        config = AdmissionConfig(**parse_args(argv))

        # Setup logging level based on config
        if config.debug:
            logging.getLogger().setLevel(logging.DEBUG)
            logger.debug("Debug mode enabled")
            logger.debug("Configuration: %s", config.export_json())

        # Create and run server
        server = AdmissionWebhookServer(config)
        server.run()

    except Exception as e:
        logger.exception("Failed to start image bouncer: %s", e)
        raise


if __name__ == "__main__":
    run()
