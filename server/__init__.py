"""HTTP surface for the helpdesk agents."""
