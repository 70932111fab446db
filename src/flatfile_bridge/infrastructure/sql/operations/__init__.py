"""SQL statement builders."""
