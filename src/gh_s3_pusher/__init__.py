"""
GitHub to S3 pusher (Lambda + SNS + KMS + S3)

Where: AWS Lambda subscribed to an SNS topic fed by a GitHub webhook.
What:  On a trigger comment on an open pull request, fetch the head revision as a zip
       archive and store it under a fixed S3 key.
Why:   Hand a reviewed snapshot of the code to downstream tooling that reads one object.
"""

__all__ = [
    "archive",
    "config",
    "credentials",
    "errors",
    "events",
    "github",
    "handler",
    "logs",
    "pipeline",
    "publisher",
    "resolver",
]
