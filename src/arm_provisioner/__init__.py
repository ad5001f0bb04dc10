"""Terraform-style infrastructure-as-code for Azure Resource Manager."""

__version__ = "0.1.0"
