"""Backend client, local session store and spreadsheet parsing."""
