"""
Test Fixtures and Configuration
------------------------------
This module contains fixtures and configuration for pytest testing.
"""

from copy import deepcopy
import logging

import pytest

from infraudit.core.drift.types import ActualResource, DeclaredResource


@pytest.fixture(autouse=True)
def restore_logging():
    """Drop handlers installed by setup_logging during a test"""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers and type(handler) in (logging.StreamHandler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


# ========== SAMPLE CONFIGURATIONS ========== #

S3_BUCKET_CONFIG = {
    "bucket": "audit-logs",
    "acl": "private",
    "versioning": {"enabled": True},
    "encryption": {
        "enabled": True,
        "algorithm": "AES256",
    },
    "public_access_block": {
        "block_public_acls": True,
        "block_public_policy": True,
    },
    "logging": {"enabled": True, "target_bucket": "central-logs"},
    "tags": {"team": "security", "env": "prod"},
}

SECURITY_GROUP_CONFIG = {
    "name": "web-sg",
    "security_group": {
        "ingress": [
            {"port": 443, "cidr_blocks": ["10.0.0.0/8"]},
            {"port": 22, "cidr_blocks": ["10.1.0.0/16"]},
        ],
    },
    "description": "Web tier",
}

EC2_INSTANCE_CONFIG = {
    "ami": "ami-0abcdef",
    "instance_type": "t3.micro",
    "monitoring": True,
    "vpc_security_group_ids": ["sg-123"],
    "tags": {"Name": "web-1"},
}


@pytest.fixture
def s3_config():
    return deepcopy(S3_BUCKET_CONFIG)


@pytest.fixture
def security_group_config():
    return deepcopy(SECURITY_GROUP_CONFIG)


@pytest.fixture
def ec2_config():
    return deepcopy(EC2_INSTANCE_CONFIG)


@pytest.fixture
def declared_bucket(s3_config):
    return DeclaredResource(
        address="aws_s3_bucket.audit_logs",
        resource_type="s3-bucket",
        provider="aws",
        configuration=s3_config,
        name="audit_logs",
    )


@pytest.fixture
def actual_bucket(s3_config):
    return ActualResource(
        address="aws_s3_bucket.audit_logs",
        resource_type="s3-bucket",
        provider="aws",
        configuration=s3_config,
        resource_id="audit-logs",
    )


@pytest.fixture
def make_declared():
    def _make(address, configuration=None, resource_type="ec2-instance", provider="aws"):
        return DeclaredResource(
            address=address,
            resource_type=resource_type,
            provider=provider,
            configuration=deepcopy(configuration if configuration is not None else EC2_INSTANCE_CONFIG),
        )
    return _make


@pytest.fixture
def make_actual():
    def _make(address, configuration=None, resource_type="ec2-instance", provider="aws"):
        return ActualResource(
            address=address,
            resource_type=resource_type,
            provider=provider,
            configuration=deepcopy(configuration if configuration is not None else EC2_INSTANCE_CONFIG),
        )
    return _make
