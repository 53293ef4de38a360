"""
Starter Lua sources: UI examples for the script editor and ready-made
panel templates for the "new panel" dialog.
"""

from dataclasses import dataclass
from typing import Dict


LUA_TEMPLATES: Dict[str, str] = {
    'simple_panel': '''
return ui.panel({ title = "My Panel", padding = 12 }, {
  ui.text({ value = "Hello from Lua!", size = "lg" }),
  ui.divider(),
  ui.row({ gap = 8 }, {
    ui.button({ label = "Click Me" }),
    ui.button({ label = "Cancel" })
  })
})
''',

    'form': '''
return ui.column({ gap = 12 }, {
  ui.heading({ value = "Settings", level = 3 }),
  ui.input({ label = "Name", placeholder = "Enter name..." }),
  ui.select({
    label = "Type",
    options = {
      { value = "a", label = "Option A" },
      { value = "b", label = "Option B" }
    }
  }),
  ui.checkbox({ label = "Enable feature" }),
  ui.slider({ label = "Volume", min = 0, max = 100, value = 50 }),
  ui.divider(),
  ui.row({ justify = "end", gap = 8 }, {
    ui.button({ label = "Cancel" }),
    ui.button({ label = "Save", primary = true })
  })
})
''',

    'list': '''
local items = {
  { id = 1, name = "Sword", type = "weapon" },
  { id = 2, name = "Shield", type = "armor" },
  { id = 3, name = "Potion", type = "consumable" }
}

return ui.panel({ title = "Inventory" }, {
  ui.list({
    items = items,
    renderItem = function(item)
      return ui.row({ gap = 8 }, {
        ui.icon({ value = "◆" }),
        ui.text({ value = item.name }),
        ui.spacer(),
        ui.badge({ value = item.type })
      })
    end
  })
})
''',
}


@dataclass(frozen=True)
class PanelTemplate:
    name: str
    icon: str
    code: str


PANEL_TEMPLATES: Dict[str, PanelTemplate] = {
    'notes': PanelTemplate(
        name='Notes',
        icon='📝',
        code='''-- Simple notes panel
local notes = state.get("notes") or ""

return ui.panel({ title = "Notes", padding = 12 }, {
  ui.textarea({
    value = notes,
    rows = 20,
    placeholder = "Write your notes here...",
    onChange = function(text)
      state.set("notes", text)
    end
  })
})''',
    ),

    'todo': PanelTemplate(
        name='Todo List',
        icon='☑',
        code='''-- Todo list panel
local todos = state.get("todos") or {}

local items = {}
for i, todo in ipairs(todos) do
  table.insert(items, ui.row({ gap = 8 }, {
    ui.checkbox({
      value = todo.done,
      onChange = function(checked)
        todos[i].done = checked
        state.set("todos", todos)
      end
    }),
    ui.text({
      value = todo.text,
      color = todo.done and "muted" or "text"
    })
  }))
end

return ui.panel({ title = "Todo", padding = 12 }, {
  ui.column({ gap = 8 }, items),
  ui.divider(),
  ui.row({ gap = 8 }, {
    ui.input({
      placeholder = "New task...",
      value = state.get("newTodo") or "",
      onChange = function(text)
        state.set("newTodo", text)
      end
    }),
    ui.button({
      label = "+",
      primary = true,
      onClick = function()
        local text = state.get("newTodo")
        if text and text ~= "" then
          table.insert(todos, { text = text, done = false })
          state.set("todos", todos)
          state.set("newTodo", "")
        end
      end
    })
  })
})''',
    ),

    'timer': PanelTemplate(
        name='Timer',
        icon='⏱',
        code='''-- Simple timer display
local elapsed = state.get("timer_elapsed") or 0
local running = state.get("timer_running") or false

local minutes = math.floor(elapsed / 60)
local seconds = elapsed % 60
local display = string.format("%02d:%02d", minutes, seconds)

return ui.panel({ title = "Timer" }, {
  ui.column({ gap = 16, align = "center" }, {
    ui.text({ value = display, size = "xl", mono = true }),
    ui.row({ gap = 8, justify = "center" }, {
      ui.button({
        label = running and "Pause" or "Start",
        primary = true,
        onClick = function()
          state.set("timer_running", not running)
        end
      }),
      ui.button({
        label = "Reset",
        onClick = function()
          state.set("timer_elapsed", 0)
          state.set("timer_running", false)
        end
      })
    })
  })
})''',
    ),

    'reference': PanelTemplate(
        name='Quick Ref',
        icon='📖',
        code='''-- Quick reference card
return ui.scroll({ height = "100%" }, {
  ui.column({ gap = 12, padding = 12 }, {
    ui.heading({ value = "Keyboard Shortcuts", level = 4 }),
    ui.column({ gap = 4 }, {
      ui.row({ justify = "between" }, {
        ui.text({ value = "Undo", color = "muted" }),
        ui.badge({ value = "Ctrl+Z" })
      }),
      ui.row({ justify = "between" }, {
        ui.text({ value = "Redo", color = "muted" }),
        ui.badge({ value = "Ctrl+Y" })
      }),
      ui.row({ justify = "between" }, {
        ui.text({ value = "Save", color = "muted" }),
        ui.badge({ value = "Ctrl+S" })
      })
    }),
    ui.divider(),
    ui.heading({ value = "Entity Types", level = 4 }),
    ui.column({ gap = 4 }, {
      ui.row({ gap = 8 }, {
        ui.icon({ value = "@", color = "success" }),
        ui.text({ value = "Player" })
      }),
      ui.row({ gap = 8 }, {
        ui.icon({ value = "!", color = "error" }),
        ui.text({ value = "Enemy" })
      }),
      ui.row({ gap = 8 }, {
        ui.icon({ value = "#", color = "warning" }),
        ui.text({ value = "Wall" })
      })
    })
  })
})''',
    ),
}
