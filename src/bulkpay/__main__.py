"""Run the bulk transaction service: `python -m bulkpay`."""

from bulkpay.api import serve

if __name__ == "__main__":
    serve()
