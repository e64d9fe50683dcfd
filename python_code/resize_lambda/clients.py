"""
A factory module for creating and providing boto3 clients.

The handler asks this module for its AWS clients instead of building them
inline, so tests running under `moto` receive intercepted clients and the core
never touches boto3 directly.
"""

import logging
import os
from typing import Tuple

import boto3
import botocore.config

from mypy_boto3_cloudwatch import CloudWatchClient
from mypy_boto3_s3 import S3Client
from mypy_boto3_sns import SNSClient

logger = logging.getLogger(__name__)

# Retries belong to the client layer; a call that still fails after these
# attempts surfaces as a per-record failure.
BOTO_CONFIG_RETRYABLE = botocore.config.Config(
    retries={"max_attempts": 5, "mode": "adaptive"}
)


def get_boto_clients() -> Tuple[S3Client, SNSClient, CloudWatchClient]:
    """
    Returns a tuple of the AWS service clients the resize handler needs.

    The AWS region is read from `AWS_REGION`, which the Lambda runtime always
    sets. If `USE_MOTO` is present the clients are expected to be intercepted
    by an active `moto` mock.

    Returns:
        A tuple containing initialized boto3 clients in the following order:
        (s3_client, sns_client, cloudwatch_client)
    """
    aws_region = os.environ.get("AWS_REGION")
    if not aws_region:
        logger.warning("AWS_REGION not set, boto3 will attempt to resolve it.")

    if os.environ.get("USE_MOTO"):
        logger.info("MOTO ENABLED: Returning mocked AWS clients.")

    s3_client: S3Client = boto3.client(
        "s3", region_name=aws_region, config=BOTO_CONFIG_RETRYABLE
    )
    sns_client: SNSClient = boto3.client(
        "sns", region_name=aws_region, config=BOTO_CONFIG_RETRYABLE
    )
    cloudwatch_client: CloudWatchClient = boto3.client(
        "cloudwatch", region_name=aws_region, config=BOTO_CONFIG_RETRYABLE
    )

    return s3_client, sns_client, cloudwatch_client
