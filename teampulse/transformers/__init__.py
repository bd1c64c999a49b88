"""Source transformers turning raw tool records into canonical activities."""

from teampulse.transformers.base import ActivityResolver, BaseTransformer, TransformResult
from teampulse.transformers.email_transformer import EmailTransformer
from teampulse.transformers.slack_transformer import SlackTransformer
from teampulse.transformers.jira_transformer import JiraTransformer
from teampulse.transformers.github_transformer import GitHubTransformer

__all__ = [
    "ActivityResolver",
    "BaseTransformer",
    "TransformResult",
    "EmailTransformer",
    "SlackTransformer",
    "JiraTransformer",
    "GitHubTransformer",
]
