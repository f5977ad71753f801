"""Async worker module for background buffering and delivery."""

from .async_worker import AsyncWorker, WorkerConfig, WorkerState

__all__ = ["AsyncWorker", "WorkerConfig", "WorkerState"]
