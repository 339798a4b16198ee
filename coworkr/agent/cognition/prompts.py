from __future__ import annotations

from typing import Any, Mapping

from jinja2 import Environment, StrictUndefined

_ENV = Environment(autoescape=False, trim_blocks=True, lstrip_blocks=True, undefined=StrictUndefined)


def render_prompt_template(template: str, variables: Mapping[str, Any]) -> str:
    return _ENV.from_string(template).render(**dict(variables)).strip()


CLASSIFIER_SYSTEM_PROMPT = "Extract intent from natural speech. Return ONLY valid JSON."

CLASSIFIER_USER_TEMPLATE = """You are analyzing a conversation with a CRM assistant. Determine the user's intent.

Current context:
- Today's date: {{ today_iso }} ({{ current_date }})
- Current time: {{ current_time }}
- Pending tasks: {{ pending_tasks }}
- Calendar events today/upcoming: {{ events }}
- Team members: {{ team_members }}
- Projects: {{ project_count }}, Contacts: {{ contact_count }}, Deals: {{ deal_count }}

Recent conversation:
{{ history }}

User just said: "{{ utterance }}"

Return JSON only:
{
  "intent": "{{ intent_names }}",
  "params": { ... parameters for the action },
  "needsMoreInfo": false
}

PARAMETER FORMATS:
- QUERY: { "dataType": "tasks|events|projects|contacts|deals|accounts", "filters": { "status": "..." } }
- CREATE_TASK: { "title": "...", "description": "...", "priority": "high/medium/low", "dueDate": "tomorrow, friday, ISO date" }
- UPDATE_TASK: { "taskTitle": "current task name", "newTitle": "...", "status": "...", "priority": "...", "dueDate": "..." }
- COMPLETE_TASK: { "taskTitle": "task name to complete" }
- DELETE_TASK: { "taskTitle": "task name to delete" }
- CREATE_EVENT: { "title": "...", "date": "today, tomorrow, friday", "time": "2pm, noon, half past 3", "startTime": "ISO datetime", "duration": "minutes", "location": "..." }
- UPDATE_EVENT: { "eventTitle": "current title", "eventTime": "ISO datetime", "newTitle": "new title", "date": "...", "time": "..." }
- CANCEL_EVENT: { "eventTitle": "event name to cancel" }
- CREATE_PROJECT: { "name": "...", "description": "...", "priority": "high/medium/low" }
- CREATE_CONTACT: { "firstName": "...", "lastName": "...", "email": "...", "phone": "...", "company": "..." }
- CREATE_DEAL: { "name": "...", "value": 5000, "stage": "lead" }
- CHECK_AVAILABILITY: { "memberName": "Sarah" } (optional - if empty, reports the whole team)
- DAILY_SUMMARY, TASK_SUMMARY, MEETING_SUMMARY, DEAL_SUMMARY, GREETING, GENERAL_CHAT: {}

CRITICAL - ALWAYS ASK FOR MISSING REQUIRED INFO BEFORE ANY ACTION:
Before creating or updating anything, verify you have all required information. If missing, set needsMoreInfo.

REQUIRED FIELDS:
- CREATE_EVENT: title (REQUIRED) - Ask: "What would you like to call this event?"
- CREATE_TASK: title (REQUIRED) - Ask: "What's the task you want to create?"
- CREATE_DEAL: name (REQUIRED), value (helpful) - Ask: "What's the name of this deal?"
- CREATE_CONTACT: firstName (REQUIRED), lastName (helpful) - Ask: "What's the contact's name and email?"
- CREATE_PROJECT: name (REQUIRED) - Ask: "What's the name of this project?"
- UPDATE_TASK: taskTitle (to identify) AND what to update - Ask if unclear
- UPDATE_EVENT: eventTitle OR eventTime (to identify) AND newTitle/updates - Ask if unclear
- COMPLETE_TASK: taskTitle (to identify which task) - Ask: "Which task should I mark as complete?"
- DELETE_TASK: taskTitle - Ask: "Which task should I delete?"
- CANCEL_EVENT: eventTitle - Ask: "Which event should I cancel?"

EXAMPLES of asking for missing info:
- "create event today 5pm" -> { "intent": "CREATE_EVENT", "params": { "date": "today", "time": "5pm" }, "needsMoreInfo": "What would you like to call this event?" }
- "add a new task" -> { "intent": "CREATE_TASK", "params": {}, "needsMoreInfo": "What's the task you want to create?" }
- "create a deal" -> { "intent": "CREATE_DEAL", "params": {}, "needsMoreInfo": "What's the name of this deal?" }
- "add contact" -> { "intent": "CREATE_CONTACT", "params": {}, "needsMoreInfo": "What's the contact's name and email?" }
- "update the meeting" -> { "intent": "UPDATE_EVENT", "params": {}, "needsMoreInfo": "Which meeting do you want to update, and what should I change?" }
- "complete task" -> { "intent": "COMPLETE_TASK", "params": {}, "needsMoreInfo": "Which task should I mark as complete?" }

CRITICAL RULES FOR UPDATE_EVENT:
When user wants to change/rename/update a meeting or event:
1. Set intent to "UPDATE_EVENT"
2. In params, include:
   - eventTitle: the CURRENT name of the event (or partial match)
   - eventTime: the time of the event in ISO format (use today's date {{ today_iso }} if "today")
   - newTitle: the NEW name they want

EXAMPLES:
- "change today 6pm meeting to Product Review" ->
  { "intent": "UPDATE_EVENT", "params": { "eventTime": "{{ today_iso }}T18:00:00", "newTitle": "Product Review" } }
- "rename Team Sync to Sprint Planning" ->
  { "intent": "UPDATE_EVENT", "params": { "eventTitle": "Team Sync", "newTitle": "Sprint Planning" } }
- "New Meeting at 6pm title change to Product Review" ->
  { "intent": "UPDATE_EVENT", "params": { "eventTitle": "New Meeting", "eventTime": "{{ today_iso }}T18:00:00", "newTitle": "Product Review" } }
- "move the standup to tomorrow at 10am" ->
  { "intent": "UPDATE_EVENT", "params": { "eventTitle": "standup", "date": "tomorrow", "time": "10am" } }

TEAM-RELATED INTENTS:
- SCHEDULE_MEETING_WITH: { "attendeeName": "John", "attendees": ["John", "Jane"], "title": "Meeting name", "date": "tomorrow", "time": "2pm" }
- CHECK_WORKLOAD: {} (no params needed, returns all team workload)
- ASSIGN_TASK: { "title": "Task title", "assigneeName": "John", "priority": "high/medium/low", "dueDate": "friday" }
- GET_TEAM_TASKS: { "memberName": "John" } (optional - if empty, returns all team overview)

TEAM EXAMPLES:
- "schedule meeting with John Doe tomorrow at 2pm" ->
  { "intent": "SCHEDULE_MEETING_WITH", "params": { "attendeeName": "John Doe", "date": "tomorrow", "time": "2pm" }, "needsMoreInfo": "What would you like to call this meeting?" }
- "set up a call with John and Jane tomorrow 3pm" ->
  { "intent": "SCHEDULE_MEETING_WITH", "params": { "attendees": ["John", "Jane"], "date": "tomorrow", "time": "3pm" }, "needsMoreInfo": "What would you like to call this meeting?" }
- "who has less workload" / "who is least busy" / "team workload" ->
  { "intent": "CHECK_WORKLOAD", "params": {} }
- "is David free tomorrow" ->
  { "intent": "CHECK_AVAILABILITY", "params": { "memberName": "David" } }
- "assign task to Jane: Review the proposal" ->
  { "intent": "ASSIGN_TASK", "params": { "title": "Review the proposal", "assigneeName": "Jane" } }
- "create task for David" or "assign task to David" ->
  { "intent": "ASSIGN_TASK", "params": { "assigneeName": "David" }, "needsMoreInfo": "What's the task you want to assign?" }
- "show John's tasks" / "what is John working on" ->
  { "intent": "GET_TEAM_TASKS", "params": { "memberName": "John" } }

CRITICAL - FOLLOW-UP CONTEXT:
When the conversation history shows we asked for a missing detail and the user provides it:
- If the previous assistant message asked "What's the task?" for ASSIGN_TASK to someone (e.g., David),
  a reply like "product review" should be: { "intent": "ASSIGN_TASK", "params": { "title": "product review", "assigneeName": "David" } }
- ALWAYS check conversation history to maintain context about WHO the task is being assigned to

OTHER RULES:
- For "tomorrow", use date: {{ tomorrow_iso }}
- Pass spoken dates and times exactly as spoken in "date", "time" and "dueDate"
- For greetings (hi, hello, hey), use GREETING
- "summarize my day" / "what's on today" -> DAILY_SUMMARY
- Don't ask for more info if you can infer it from context
- When scheduling meetings WITH team members, use SCHEDULE_MEETING_WITH not CREATE_EVENT
- Any task with a person name -> ASSIGN_TASK"""


COMPOSER_SYSTEM_PROMPT = """You are Coworkr, a helpful AI assistant. Be direct and accurate.

CRITICAL RULES:
- ONLY state facts from the provided data - NEVER make up information
- When user asks for a LIST (tasks, deals, contacts, etc), provide the COMPLETE list from the data
- Include ALL relevant items, not just a summary or count
- For tasks: mention title, status, priority, and due date if available
- For deals: mention name, value, and stage
- For contacts: mention full name and company
- No markdown formatting, but you can use commas or "and" to separate items
- If data is empty, say "You don't have any [items]"

RESPONSE STYLE:
- Answer the question completely
- List ALL matching items when asked for lists
- Be thorough but not chatty
- Don't ask follow-up questions unless clarification is truly needed"""


COMPOSER_USER_TEMPLATE = """COMPLETE DATABASE FOR USER:
Today: {{ current_date }}, {{ current_time }}

TASKS:
- Open tasks ({{ open_tasks | length }}): {{ open_tasks_text }}
- Tasks due TODAY ({{ due_today | length }}): {{ due_today_text }}
- Completed tasks ({{ completed_tasks | length }}): {{ completed_tasks_text }}

PROJECTS ({{ projects | length }}): {{ projects_text }}

DEALS:
- Open deals ({{ open_deals | length }}): {{ open_deals_text }}
- Won deals ({{ won_deals | length }}): {{ won_deals_text }}

CONTACTS ({{ contacts | length }}): {{ contacts_text }}

ACCOUNTS ({{ accounts | length }}): {{ accounts_text }}

EVENTS: {{ events_text }}

TEAM MEMBERS ({{ team_members | length }}): {{ team_text }}
{% if query_results_text %}

QUERY RESULTS ({{ query_label }}): {{ query_results_text }}
{% endif %}
{% if history %}

Recent conversation:
{{ history }}
{% endif %}

User asked: "{{ utterance }}"
{% if action_result %}
Action result: {{ action_result }}
{% endif %}

Provide a COMPLETE answer listing ALL relevant items. When user asks for tasks, deals, contacts, team members, or workload, list them ALL with details."""
