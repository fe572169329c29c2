from __future__ import annotations

from faker.providers import BaseProvider

from motorcover.db.models import VehicleType
from . import datasets


class MotorcoverProvider(BaseProvider):
    def plate_number(self) -> str:
        return datasets.random_plate(self.generator.random)

    def vehicle_type(self) -> VehicleType:
        return self.random_element(list(VehicleType))

    def vehicle_model(self, vehicle_type: VehicleType | None = None) -> str:
        return datasets.random_model(vehicle_type or self.vehicle_type(), self.generator.random)

    def customer_name(self) -> str:
        return f"{datasets.random_first_name(self.generator.random)} {datasets.random_surname(self.generator.random)}"

    def contact_number(self) -> str:
        return datasets.random_contact_number(self.generator.random)

    def customer_address(self) -> str:
        return f"{self.random_int(1, 250)} Main Road, {datasets.random_city(self.generator.random)}"
