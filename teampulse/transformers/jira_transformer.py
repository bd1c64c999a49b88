"""Jira issues -> ticket_created, status_change and ticket_updated activities.

One raw issue fans out into several activities, each with its own ref id:

    jira:{ticket}:created
    jira:{ticket}:status:{i}     one per changelog entry, i = list position
    jira:{ticket}:worklog:{i}    one per worklog entry, i = list position

Because every sub-event is deduplicated on its own, an issue that gains a
new transition only produces the new activity on the next run.
"""

import logging
from typing import List

from teampulse.models.raw import JiraRawIssue
from teampulse.models.raw_sources import JiraIssueRecord
from teampulse.transformers.base import BaseTransformer, ActivityDraft, Skipped
from teampulse.utils.timezone import utc_now

logger = logging.getLogger(__name__)


class JiraTransformer(BaseTransformer):
    source = "jira"
    raw_type = JiraRawIssue

    def fetch(self, since, scope) -> List[JiraIssueRecord]:
        query = self.db.query(JiraIssueRecord)
        if since is not None:
            query = query.filter(JiraIssueRecord.updated_at >= since)
        if scope:
            query = query.filter(JiraIssueRecord.workspace == scope)
        return query.order_by(JiraIssueRecord.id.asc()).all()

    def describe(self, row: JiraIssueRecord) -> str:
        return row.ticket

    def map_record(self, issue: JiraRawIssue):
        org_id = issue.workspace or "default"
        alias = issue.workspace or "unknown"
        items = []

        created_ref = f"jira:{issue.ticket}:created"
        if issue.reporter_email:
            items.append(
                ActivityDraft(
                    source_ref_id=created_ref,
                    org_id=org_id,
                    activity_type="ticket_created",
                    actor_email=issue.reporter_email,
                    project_alias=alias,
                    timestamp=issue.created_at or issue.assigned_at or utc_now(),
                    metadata={
                        "ticket": issue.ticket,
                        "issue_type": issue.issue_type,
                        "priority": issue.priority,
                        "labels": issue.labels,
                        "components": issue.components,
                    },
                )
            )
        else:
            items.append(Skipped(created_ref, "no reporter email"))

        for i, change in enumerate(issue.status_changes):
            ref = f"jira:{issue.ticket}:status:{i}"
            actor = issue.assignee_email or issue.reporter_email
            if not actor:
                items.append(Skipped(ref, "no actor email"))
                continue
            items.append(
                ActivityDraft(
                    source_ref_id=ref,
                    org_id=org_id,
                    activity_type="status_change",
                    actor_email=actor,
                    project_alias=alias,
                    timestamp=issue.updated_at or utc_now(),
                    metadata={
                        "ticket": issue.ticket,
                        "from_status": change.from_status,
                        "to_status": change.to_status,
                        "issue_type": issue.issue_type,
                    },
                )
            )

        for i, worklog in enumerate(issue.worklogs):
            ref = f"jira:{issue.ticket}:worklog:{i}"
            if not worklog.author:
                items.append(Skipped(ref, "no worklog author"))
                continue

            actor = issue.assignee_email
            if worklog.author == issue.reporter and issue.reporter_email:
                actor = issue.reporter_email
            if not actor:
                items.append(Skipped(ref, "no actor email"))
                continue

            items.append(
                ActivityDraft(
                    source_ref_id=ref,
                    org_id=org_id,
                    activity_type="ticket_updated",
                    actor_email=actor,
                    project_alias=alias,
                    timestamp=worklog.started or issue.updated_at or utc_now(),
                    metadata={
                        "ticket": issue.ticket,
                        "update_type": "worklog",
                        "time_spent": worklog.time_spent,
                        "time_spent_seconds": worklog.time_spent_seconds,
                    },
                )
            )

        return items
