"""Base AWS service class with common functionality"""

import asyncio
import time
from functools import partial
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError
import structlog

from invoicing.core.config import settings
from invoicing.core.exceptions import AWSServiceError
from invoicing.core.logging import metrics_logger

logger = structlog.get_logger()

# Error codes that will fail the same way on every attempt
NON_RETRYABLE_CODES = frozenset({
    "ValidationException",
    "InvalidParameterValue",
    "AccessDeniedException",
    "ResourceNotFoundException",
})


class AWSServiceBase:
    """
    Lazily created boto3 client plus a retrying async ``call``.

    boto3 is blocking, so every API call runs in the default executor.
    A pre-built client may be passed in, in which case no session is created.
    """

    def __init__(
        self,
        service_name: str,
        client: Any = None,
        max_retries: int = 3,
        backoff_base: float = 0.5
    ):
        self.service_name = service_name
        self.region = settings.AWS_REGION
        self.client = client
        self.max_retries = max_retries
        self.backoff_base = backoff_base

    @property
    def is_ready(self) -> bool:
        return self.client is not None

    async def initialize(self):
        if self.is_ready:
            return
        session = boto3.Session(
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            region_name=self.region
        )
        self.client = session.client(self.service_name)
        logger.info("AWS client initialized", service=self.service_name, region=self.region)

    async def close(self):
        # boto3 pools connections internally; dropping the client is enough
        if self.client is not None:
            self.client = None
            logger.info("AWS client closed", service=self.service_name)

    async def call(self, operation: str, **params: Any) -> Dict[str, Any]:
        """Invoke ``operation`` with exponential backoff; raises AWSServiceError"""
        if not self.is_ready:
            raise AWSServiceError(f"{self.service_name} client is not initialized", self.service_name)

        method = getattr(self.client, operation)
        loop = asyncio.get_running_loop()

        for attempt in range(1, self.max_retries + 1):
            start = time.time()
            try:
                result = await loop.run_in_executor(None, partial(method, **params))
            except ClientError as e:
                error = e.response.get("Error", {})
                error_code = error.get("Code", "Unknown")
                metrics_logger.log_aws_api_call(
                    service=self.service_name,
                    operation=operation,
                    duration=time.time() - start,
                    success=False,
                    error_code=error_code
                )
                if error_code in NON_RETRYABLE_CODES or attempt == self.max_retries:
                    logger.error(
                        "AWS API error",
                        service=self.service_name,
                        operation=operation,
                        error_code=error_code,
                        attempts=attempt
                    )
                    raise AWSServiceError(
                        error.get("Message", str(e)),
                        self.service_name,
                        {"error_code": error_code, "operation": operation}
                    ) from e

                wait_time = self.backoff_base * (2 ** (attempt - 1))
                logger.warning(
                    "AWS call failed, retrying",
                    operation=operation,
                    attempt=attempt,
                    wait_time=wait_time,
                    error_code=error_code
                )
                await asyncio.sleep(wait_time)
            else:
                metrics_logger.log_aws_api_call(
                    service=self.service_name,
                    operation=operation,
                    duration=time.time() - start,
                    success=True
                )
                return result

        raise AWSServiceError("AWS call made no attempts", self.service_name, {"operation": operation})
