class FeaturedItem:
    def __init__(self, id, name, type="market"):
        self.id = id
        self.name = name
        self.type = type

    def to_json(self):
        data = {
            "id": self.id,
            "name": self.name,
        }
        if self.type:
            data["type"] = self.type
        return data

    @staticmethod
    def from_json(data):
        try:
            item_id = int(data.get("id") or 0)
        except (TypeError, ValueError):
            item_id = 0
        return FeaturedItem(
            item_id,
            str(data.get("name", "")),
            data.get("type"),
        )
