"""
Alert policy — which check types are how severe, and which subscription
tiers hear about which incidents.

Loaded from alert_policy.yaml next to this module, cached in memory, with a
hardcoded fallback when the file is missing or unreadable.
"""
import os
import logging

import yaml

logger = logging.getLogger('siteops.monitoring.policy')

_alert_policy = None


def _default_policy():
    """Hardcoded fallback if YAML is missing."""
    return {
        'version': 'default',
        'severity_by_check_type': {
            'uptime': 'sev-1',
            'health_api': 'sev-1',
            'ssl': 'sev-1',
            'cms': 'sev-2',
            'form': 'sev-2',
        },
        'default_severity': 'sev-3',
        'client_alert_severities': {
            'care': ['sev-1', 'sev-2'],
            'essentials': ['sev-1'],
            'none': [],
        },
        'client_resolution_tiers': ['care'],
    }


def load_alert_policy():
    """Load the alert policy from YAML, with in-memory cache and hardcoded fallback."""
    global _alert_policy
    if _alert_policy is not None:
        return _alert_policy

    config_path = os.path.join(os.path.dirname(__file__), 'alert_policy.yaml')
    try:
        with open(config_path, 'r') as f:
            _alert_policy = yaml.safe_load(f)
        logger.info("Alert policy loaded from YAML (version=%s)", _alert_policy.get('version', '?'))
    except Exception as e:
        logger.warning("Alert policy YAML not loaded (%s), using defaults", e)
        _alert_policy = _default_policy()

    return _alert_policy


def severity_for(check_type):
    policy = load_alert_policy()
    return policy.get('severity_by_check_type', {}).get(check_type, policy.get('default_severity', 'sev-3'))


def client_alert_severities(tier):
    return set(load_alert_policy().get('client_alert_severities', {}).get(tier) or [])


def client_gets_resolution(tier):
    return tier in set(load_alert_policy().get('client_resolution_tiers') or [])
