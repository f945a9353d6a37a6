"""
Alert Ticketer - Alert webhook to email and Azure DevOps work items

Receives Grafana / AlertManager webhooks, assigns each alert a stable
human-readable ID, notifies a distribution list and keeps a work item
open while the alert is firing.
"""

__version__ = "0.1.0"
__author__ = "Software Factory Team"
__description__ = "Alert webhook relay with stable alert IDs, email notification and work item sync"
