"""
Pytest configuration shared by the whole suite.
Switches the settings to the in-memory SQLite profile before anything
imports the app, and supplies test-only Razorpay credentials.
"""
import os

# Set testing environment before importing app
os.environ["TESTING"] = "True"
os.environ["DEBUG"] = "False"
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "test-checkout-secret")
os.environ.setdefault("RAZORPAY_WEBHOOK_SECRET", "test-webhook-secret")
# Unroutable broker so nothing ever reaches a real Redis
os.environ.setdefault("REDIS_URL", "redis://127.0.0.1:1/0")
