"""Prompt templates for the model gateway."""

RESPONSE_FORMAT_PROMPT = """## Response Format

Respond with ONLY a JSON object:

```json
{
  "reply": "text shown to the user",
  "actions": [],
  "memory_updates": []
}
```

- "reply" (required): your answer in plain text.
- "actions" (optional): ordered steps to run on the host. Each entry is either
  {"skill": "<name from Available Skills>"} or
  {"command": "<shell command>", "rollback": "<optional shell command undoing it>"}.
  Leave it empty unless the user asked you to do something on the machine.
- "memory_updates" (optional): whole-document replacements, each
  {"name": "user" | "state", "content": "<full new document>"}.
  Only include a document when it actually changes.

Never put commands in "reply"; only "actions" are executed."""

SKILL_TRANSLATION_PROMPT = """You translate a declarative skill into concrete shell commands for this host.

## Skill: {name}
{description}

## Steps
{steps}

## Rollback
{rollback}

## Context
{context}

Respond with ONLY a JSON object containing exactly one command per step, in order,
and the rollback command (or null when the skill has no rollback):

```json
{{"commands": ["<command for step 1>", "..."], "rollback": "<command or null>"}}
```"""

CONSOLIDATION_PROMPT = """You maintain the agent's current-state memory document.

## Current State
{state}

## Today's Log ({day})
{records}

Rewrite the current-state document so it reflects what is true after today:
ongoing tasks, open questions, recent events worth remembering. Keep it short
and in markdown. Respond with ONLY the new document."""
