"""Pure domain types: roles, lifecycles, DTOs, notifications, clock."""
