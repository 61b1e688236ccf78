"""Reconciliation of extract records with stored opportunities."""

from .reconcile import CREATED, UPDATED, Reconciler

__all__ = ["CREATED", "UPDATED", "Reconciler"]
