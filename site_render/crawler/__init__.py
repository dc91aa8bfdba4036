"""site_render.crawler: движок предрендеринга маршрутов (кэш, пул страниц, планировщик, исполнитель)."""
