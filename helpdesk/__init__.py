"""IT helpdesk service: tickets, knowledge base, notifications and user approval."""
