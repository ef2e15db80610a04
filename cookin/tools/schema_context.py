"""Data model description injected into the tool-calling system prompt."""

DB_SCHEMA_CONTEXT = """## Data Model

You can read and change this data only through the tools you were given.

### user (the person you are talking to)
- name
- cuisine_preferences (list of strings, e.g. ["Indian", "Italian"])
- dietary_restrictions (list of strings)
- household_size (integer, people cooked for)
- skill_level (beginner | intermediate | advanced)
- cook_days (list of weekday names, e.g. ["Monday", "Wednesday"])
- grocery_day (weekday name), grocery_time (HH:MM)
- cook_reminder_time (HH:MM), timezone (IANA name)
- max_messages_per_day (integer)

### inventory_item
- name (lowercase), category, quantity (free text), is_staple

### saved_recipe
- name (unique per user, case-insensitive)
- original_steps, modified_steps
- ingredients (list of {name, qty, unit})
- cook_time_min, cuisine
- rating (1-5), notes
- times_cooked, last_cooked (date), is_favorite

### meal_plan
- week_start (date, a Monday)
- status (draft | confirmed | completed)

### planned_meal
- day (e.g. Monday), meal_type (breakfast | lunch | dinner)
- recipe_name, steps, ingredients (list of {name, qty, unit}), cook_time_min
- status (pending | cooked | skipped), rating (1-5), comment, is_favorite

### grocery_list
- items (list of {name, qty, unit, section}), sent_at, fulfilled"""
