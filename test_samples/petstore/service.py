from typing import Dict

from courier.statuserror import wrap

from .models import Pet
from .statuserrors import PetError

_PETS: Dict[int, Pet] = {}


def list_pets(kind, size):
    pets = [p for p in _PETS.values() if kind is None or p.kind == kind]
    return pets[:size]


def find_pet(pet_id):
    pet = _PETS.get(pet_id)
    if pet is None:
        raise PetError.PetNotFound.as_error()
    return pet


def validate_pet(pet):
    if not pet.name:
        raise wrap(ValueError("empty name"), 400, "EmptyName", "pet name is required")
    if pet.id <= 0:
        raise PetError.InvalidPet.as_error()


def create_pet(pet):
    validate_pet(pet)
    _PETS[pet.id] = pet
    return pet


def update_pet(pet_id, pet):
    find_pet(pet_id)
    validate_pet(pet)
    _PETS[pet_id] = pet
    return pet


def delete_pet(pet_id):
    find_pet(pet_id)
    del _PETS[pet_id]
